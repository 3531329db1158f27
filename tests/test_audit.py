"""
Tests for the audit trail on concession records
"""
import pytest

from utils.context import RequestContext, get_request_context
from utils.models import AuditLog
from concessions.services import AllocationService, BookletService

pytestmark = pytest.mark.django_db


class TestAuditTrail:

    def test_creation_is_stamped_with_acting_user(self, staff_user):
        with RequestContext(user=staff_user, ip_address='10.0.0.7'):
            booklet = BookletService.create_booklet('A0807550')

        assert booklet.created_by_id == str(staff_user.pk)
        assert booklet.created_from_ip == '10.0.0.7'

        entry = AuditLog.objects.get(content_type='concessions.concessionbooklet', action='CREATE')
        assert entry.object_id == str(booklet.pk)
        assert entry.user_id == str(staff_user.pk)
        assert entry.ip_address == '10.0.0.7'

    def test_allocation_records_changed_fields(self, staff_user, booklet, make_application):
        application = make_application()

        with RequestContext(user=staff_user):
            AllocationService.allocate(application.pk, booklet.pk)

        application.refresh_from_db()
        assert application.reviewed_by_id == str(staff_user.pk)

        entry = AuditLog.objects.get(
            content_type='concessions.concessionapplication',
            object_id=str(application.pk),
            action='UPDATE',
        )
        assert entry.user_id == str(staff_user.pk)
        assert entry.changes['status'] == {'old': 'PENDING', 'new': 'APPROVED'}
        assert entry.changes['page_offset'] == {'old': None, 'new': '0'}

    def test_context_is_restored(self, staff_user):
        with RequestContext(user=staff_user):
            pass
        assert get_request_context() is None

    def test_rerange_in_use_records_reason(self, booklet, approve):
        approve(booklet)

        BookletService.update_booklet(booklet.pk, 'A0900000', is_damaged=False)

        reasoned = [entry for entry in booklet.get_history() if entry.change_reason]
        assert len(reasoned) == 1
        latest = reasoned[0]
        assert latest.action == 'UPDATE'
        assert latest.change_reason == 'Re-ranged from A0807550 with bound applications'
        assert latest.changes['serial_start_number'] == {'old': 'A0807550', 'new': 'A0900000'}

    def test_change_reason_applies_to_one_save_only(self, booklet, approve):
        approve(booklet)
        reranged = BookletService.update_booklet(booklet.pk, 'A0900000', is_damaged=False)

        reranged.anchor_x = 4
        reranged.save()
        approve(reranged)

        history = list(reranged.get_history(limit=20))
        reasoned = [entry for entry in history if entry.change_reason]
        assert len(reasoned) == 1
        assert reasoned[0].changes['serial_start_number']['new'] == 'A0900000'

        anchor_update = next(entry for entry in history if 'anchor_x' in entry.changes)
        assert anchor_update.change_reason == ''

    def test_audit_log_can_be_disabled(self, settings):
        settings.AUDIT_LOG_ENABLED = False
        BookletService.create_booklet('A0807550')
        assert not AuditLog.objects.exists()

    def test_request_records_client_details(self, staff_client, staff_user):
        staff_client.post(
            '/concessions/booklets/create/',
            {'serial_start_number': 'B0100001'},
            content_type='application/json',
            HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1',
        )

        entry = AuditLog.objects.get(content_type='concessions.concessionbooklet', action='CREATE')
        assert entry.user_id == str(staff_user.pk)
        assert entry.ip_address == '203.0.113.9'
        assert entry.request_path == '/concessions/booklets/create/'
