"""
Tests for application submission and rejection
"""
import uuid

import pytest

from concessions.exceptions import ConcessionError, ApplicationStateError, NotFoundError
from concessions.models import ConcessionApplication
from concessions.services import ApplicationService, AllocationService

pytestmark = pytest.mark.django_db


class TestSubmitApplication:

    def test_creates_pending_application(self, student):
        application = ApplicationService.submit_application(
            student, station='Dadar', concession_class='FIRST', concession_period='QUARTERLY'
        )

        assert application.status == 'PENDING'
        assert application.short_id == 1
        assert application.submission_count == 1
        assert application.station == 'Dadar'
        assert application.concession_booklet is None
        assert application.page_offset is None

    def test_short_ids_are_sequential(self, make_application):
        first = make_application()
        second = make_application()
        assert second.short_id == first.short_id + 1

    def test_unapproved_student_refused(self, make_student):
        student = make_student(status='PENDING')
        with pytest.raises(ApplicationStateError) as excinfo:
            ApplicationService.submit_application(student)
        assert excinfo.value.field == 'student'
        assert not ConcessionApplication.objects.exists()

    def test_unknown_type_refused(self, student):
        with pytest.raises(ConcessionError):
            ApplicationService.submit_application(student, application_type='TRANSFER')

    def test_resubmission_after_rejection_reuses_application(self, student):
        application = ApplicationService.submit_application(student)
        ApplicationService.reject_application(application.pk, 'Photo unclear')

        again = ApplicationService.submit_application(student, station='Thane')

        assert again.pk == application.pk
        assert again.status == 'PENDING'
        assert again.submission_count == 2
        assert again.rejection_reason == ''
        assert again.reviewed_at is None
        assert again.station == 'Thane'

    def test_new_application_after_approval(self, student, booklet, make_application):
        first = make_application(student=student)
        AllocationService.allocate(first.pk, booklet.pk)

        second = ApplicationService.submit_application(student)

        assert second.pk != first.pk
        assert second.previous_application is None
        assert ConcessionApplication.objects.filter(student=student).count() == 2


class TestRejectApplication:

    def test_rejects_pending(self, make_application, staff_user):
        application = make_application()

        rejected = ApplicationService.reject_application(application.pk, '  Fee receipt missing ', reviewed_by=staff_user)

        assert rejected.status == 'REJECTED'
        assert rejected.rejection_reason == 'Fee receipt missing'
        assert rejected.reviewed_by_id == str(staff_user.pk)
        assert rejected.concession_booklet is None

    @pytest.mark.parametrize('reason', ['', '   ', None])
    def test_reason_required(self, make_application, reason):
        application = make_application()
        with pytest.raises(ConcessionError) as excinfo:
            ApplicationService.reject_application(application.pk, reason)
        assert excinfo.value.field == 'rejection_reason'

        application.refresh_from_db()
        assert application.status == 'PENDING'

    def test_rejecting_twice_refused(self, make_application):
        application = make_application()
        ApplicationService.reject_application(application.pk, 'Incomplete')

        with pytest.raises(ApplicationStateError):
            ApplicationService.reject_application(application.pk, 'Still incomplete')

    def test_approved_application_cannot_be_rejected(self, booklet, approve):
        allocation = approve(booklet)
        with pytest.raises(ApplicationStateError):
            ApplicationService.reject_application(allocation.application.pk, 'Changed my mind')

    def test_unknown_application(self):
        with pytest.raises(NotFoundError):
            ApplicationService.reject_application(uuid.uuid4(), 'Unknown')
