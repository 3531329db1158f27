"""
Tests for certificate numbers and current pass lookup
"""
import pytest

from concessions.exceptions import NotAllocatedError
from concessions.services import AllocationService, BookletService, CertificateService, ApplicationService

pytestmark = pytest.mark.django_db


class TestCertificateFor:

    def test_pending_application_has_no_certificate(self, make_application):
        with pytest.raises(NotAllocatedError):
            CertificateService.certificate_for(make_application())

    def test_certificate_is_serial_at_page(self, booklet, approve):
        allocations = [approve(booklet) for _ in range(4)]
        assert CertificateService.certificate_for(allocations[3].application) == 'A0807553'

    def test_certificate_is_stable_across_reads(self, booklet, approve):
        allocation = approve(booklet)
        approve(booklet)

        allocation.application.refresh_from_db()
        assert CertificateService.certificate_for(allocation.application) == allocation.certificate_number

    def test_certificate_keeps_leading_zeros(self, approve):
        booklet = BookletService.create_booklet('B0000001')
        assert approve(booklet).certificate_number == 'B0000001'


class TestCurrentPass:

    def test_new_application(self, make_application):
        assert CertificateService.current_pass_for(make_application()) == 'New'

    def test_renewal_without_previous_pass(self, student, make_application):
        renewal = make_application(student=student, application_type='RENEWAL')
        assert renewal.previous_application is None
        assert CertificateService.current_pass_for(renewal) == 'N/A'

    def test_renewal_shows_previous_certificate(self, student, make_application, approve):
        booklet = BookletService.create_booklet('B0100001')
        approve(booklet)
        approve(booklet)

        first = make_application(student=student)
        AllocationService.allocate(first.pk, booklet.pk)

        renewal = ApplicationService.submit_application(student, application_type='RENEWAL')

        assert renewal.pk != first.pk
        assert renewal.previous_application_id == first.pk
        assert CertificateService.current_pass_for(renewal) == 'B0100003'


class TestSerialRangeOf:

    def test_range_bounds(self, booklet):
        assert CertificateService.serial_range_of(booklet) == ('A0807550', 'A0807599')
