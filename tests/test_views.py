"""
Tests for the concession JSON endpoints and the register export
"""
from io import BytesIO
import uuid

import pytest
from django.urls import reverse
from openpyxl import load_workbook

from concessions.models import ConcessionBooklet
from concessions.services import BookletService

pytestmark = pytest.mark.django_db


def post_json(client, url, data):
    return client.post(url, data, content_type='application/json')


class TestAccess:

    def test_anonymous_gets_401(self, client):
        response = client.get(reverse('concessions:allocatable_booklets'))
        assert response.status_code == 401
        assert response.json()['success'] is False

    def test_non_staff_gets_403(self, client, django_user_model):
        user = django_user_model.objects.create_user(username='student', password='pass')
        client.force_login(user)

        response = post_json(client, reverse('concessions:booklet_create'), {'serial_start_number': 'A0807550'})

        assert response.status_code == 403
        assert not ConcessionBooklet.objects.exists()


class TestBookletEndpoints:

    def test_create(self, staff_client):
        response = post_json(staff_client, reverse('concessions:booklet_create'), {
            'serial_start_number': 'a0807550',
            'overlay_template_ref': 'overlays/a.pdf',
        })

        assert response.status_code == 201
        body = response.json()
        assert body['success'] is True
        assert body['booklet']['serial_end_number'] == 'A0807599'
        assert body['booklet']['status'] == 'AVAILABLE'
        assert body['booklet']['usage']['total_pages'] == 50

    def test_create_malformed_serial(self, staff_client):
        response = post_json(staff_client, reverse('concessions:booklet_create'), {'serial_start_number': '0807550'})

        assert response.status_code == 400
        assert 'serial_start_number' in response.json()['errors']

    def test_create_overlap(self, staff_client, booklet):
        response = post_json(staff_client, reverse('concessions:booklet_create'), {'serial_start_number': 'A0807570'})

        assert response.status_code == 409
        body = response.json()
        assert body['error']['type'] == 'OVERLAP'
        assert f"#{booklet.booklet_number}" in body['message']

    def test_invalid_json(self, staff_client):
        response = staff_client.post(
            reverse('concessions:booklet_create'), data='{not json', content_type='application/json'
        )
        assert response.status_code == 400

    def test_update(self, staff_client, booklet):
        url = reverse('concessions:booklet_update', args=[booklet.pk])
        response = post_json(staff_client, url, {'serial_start_number': 'A0807550', 'is_damaged': True})

        assert response.status_code == 200
        assert response.json()['booklet']['status'] == 'DAMAGED'

    def test_update_unknown_booklet(self, staff_client):
        url = reverse('concessions:booklet_update', args=[uuid.uuid4()])
        response = post_json(staff_client, url, {'serial_start_number': 'A0807550'})
        assert response.status_code == 404

    def test_delete_in_use(self, staff_client, booklet, approve):
        approve(booklet)
        response = staff_client.post(reverse('concessions:booklet_delete', args=[booklet.pk]))

        assert response.status_code == 409
        assert response.json()['error']['type'] == 'IN_USE'

    def test_delete(self, staff_client, booklet):
        response = staff_client.post(reverse('concessions:booklet_delete', args=[booklet.pk]))

        assert response.status_code == 200
        assert not ConcessionBooklet.objects.exists()

    def test_damaged_pages(self, staff_client, booklet):
        url = reverse('concessions:booklet_damaged_pages', args=[booklet.pk])
        response = post_json(staff_client, url, {'pages': [4, 1, 4]})

        assert response.status_code == 200
        assert response.json()['booklet']['damaged_pages'] == [1, 4]

    def test_damaged_pages_must_be_integers(self, staff_client, booklet):
        url = reverse('concessions:booklet_damaged_pages', args=[booklet.pk])
        response = post_json(staff_client, url, {'pages': ['one']})
        assert response.status_code == 400

    def test_allocatable_list(self, staff_client, booklet, approve):
        fresh = BookletService.create_booklet('B0100001')
        approve(booklet)

        response = staff_client.get(reverse('concessions:allocatable_booklets'))

        booklets = response.json()['booklets']
        assert [b['id'] for b in booklets] == [str(booklet.pk), str(fresh.pk)]
        assert booklets[0]['bound_count'] == 1
        assert booklets[1]['last_used_at'] is None

    def test_booklet_list_search(self, staff_client, booklet):
        BookletService.create_booklet('B0300003')

        response = staff_client.get(reverse('concessions:booklet_list'), {'q': 'a0807'})

        body = response.json()
        assert [b['id'] for b in body['booklets']] == [str(booklet.pk)]
        assert body['pagination']['total_count'] == 1

    def test_booklet_pages(self, staff_client, booklet, approve):
        allocation = approve(booklet)
        BookletService.update_damaged_pages(booklet.pk, [3])

        response = staff_client.get(reverse('concessions:booklet_pages', args=[booklet.pk]))

        pages = response.json()['pages']
        assert [p['serial_number'] for p in pages] == ['A0807550', 'A0807553']
        assert pages[0]['application']['short_id'] == allocation.application.short_id
        assert pages[0]['current_pass'] == 'New'
        assert pages[1]['is_damaged'] is True


class TestApplicationEndpoints:

    def test_submit(self, staff_client, student):
        response = post_json(staff_client, reverse('concessions:application_submit'), {
            'student_id': str(student.pk),
            'application_type': 'NEW',
            'station': 'Andheri',
        })

        assert response.status_code == 200
        assert response.json()['application']['status'] == 'PENDING'

    def test_approve(self, staff_client, staff_user, booklet, make_application):
        application = make_application()
        url = reverse('concessions:application_approve', args=[application.pk])

        response = post_json(staff_client, url, {'booklet_id': str(booklet.pk)})

        assert response.status_code == 200
        body = response.json()
        assert body['certificate_number'] == 'A0807550'
        assert body['page_offset'] == 0

        application.refresh_from_db()
        assert application.reviewed_by_id == str(staff_user.pk)

    def test_approve_twice_conflicts(self, staff_client, booklet, approve):
        allocation = approve(booklet)
        url = reverse('concessions:application_approve', args=[allocation.application.pk])

        response = post_json(staff_client, url, {'booklet_id': str(booklet.pk)})

        assert response.status_code == 409
        assert response.json()['error']['type'] == 'INVALID_STATE'

    def test_approve_unknown_booklet(self, staff_client, make_application):
        url = reverse('concessions:application_approve', args=[make_application().pk])
        response = post_json(staff_client, url, {'booklet_id': str(uuid.uuid4())})

        assert response.status_code == 404
        assert response.json()['error']['type'] == 'NOT_FOUND'

    def test_approve_exhausted_booklet(self, staff_client, small_pages, approve, make_application):
        booklet = BookletService.create_booklet('C001')
        for _ in range(3):
            approve(booklet)

        url = reverse('concessions:application_approve', args=[make_application().pk])
        response = post_json(staff_client, url, {'booklet_id': str(booklet.pk)})

        assert response.status_code == 409
        assert response.json()['error']['type'] == 'EXHAUSTED'

    def test_reject_requires_reason(self, staff_client, make_application):
        url = reverse('concessions:application_reject', args=[make_application().pk])
        response = post_json(staff_client, url, {'rejection_reason': '  '})
        assert response.status_code == 400

    def test_reject(self, staff_client, make_application):
        url = reverse('concessions:application_reject', args=[make_application().pk])
        response = post_json(staff_client, url, {'rejection_reason': 'Photo missing'})

        assert response.status_code == 200
        assert response.json()['application']['status'] == 'REJECTED'

    def test_certificate_and_current_pass(self, staff_client, booklet, approve):
        allocation = approve(booklet)
        application_id = allocation.application.pk

        certificate = staff_client.get(reverse('concessions:application_certificate', args=[application_id]))
        current_pass = staff_client.get(reverse('concessions:application_current_pass', args=[application_id]))

        assert certificate.json()['certificate_number'] == 'A0807550'
        assert current_pass.json()['current_pass'] == 'New'

    def test_certificate_of_pending_application(self, staff_client, make_application):
        url = reverse('concessions:application_certificate', args=[make_application().pk])
        response = staff_client.get(url)

        assert response.status_code == 400
        assert response.json()['error']['type'] == 'NOT_ALLOCATED'


class TestRegisterExport:

    def test_excel_register(self, staff_client, booklet, approve):
        approve(booklet)
        BookletService.update_damaged_pages(booklet.pk, [1])

        response = staff_client.get(reverse('concessions:booklet_export_excel', args=[booklet.pk]))

        assert response.status_code == 200
        assert 'attachment;' in response['Content-Disposition']

        sheet = load_workbook(BytesIO(response.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][:2] == ('Page', 'Serial Number')
        assert rows[1][:3] == (1, 'A0807550', 'Approved')
        assert rows[2][:3] == (2, 'A0807551', 'Damaged')

    def test_unknown_booklet(self, staff_client):
        response = staff_client.get(reverse('concessions:booklet_export_excel', args=[uuid.uuid4()]))
        assert response.status_code == 404
