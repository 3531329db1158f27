# concessions/actions.py

"""
Typed-result entry points for the concession workflows.

Every function returns an OperationResult instead of raising: refused
operations come back as failures carrying the error type, message and
offending field; unexpected database errors come back as UNAVAILABLE.

Usage:
    result = approve_with_booklet(application_id, booklet_id, reviewed_by=request.user)
    if result.success:
        certificate = result.data['certificate_number']
    else:
        message = result.error.message
"""

from dataclasses import dataclass
from functools import wraps
from django.core.exceptions import ValidationError
from django.db import DatabaseError
import logging

from students.models import Student
from .exceptions import ConcessionError, NotFoundError
from .models import ConcessionApplication
from .services import BookletService, AllocationService, ApplicationService, CertificateService

logger = logging.getLogger(__name__)

UNAVAILABLE = 'UNAVAILABLE'


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class ActionError:
    type: str
    message: str
    field: str = None
    http_status: int = 400

    @classmethod
    def from_exception(cls, exc):
        return cls(
            type=exc.error_type,
            message=exc.message,
            field=exc.field,
            http_status=exc.http_status,
        )

    def to_dict(self):
        return {'type': self.type, 'message': self.message, 'field': self.field}


@dataclass(frozen=True)
class OperationResult:
    success: bool
    data: object = None
    error: ActionError = None

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error):
        return cls(success=False, error=error)


def action_result(func):
    """Run ``func`` and wrap its return value or refusal in an OperationResult."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return OperationResult.ok(func(*args, **kwargs))
        except ConcessionError as e:
            logger.warning(f"{func.__name__} refused ({e.error_type}): {e.message}")
            return OperationResult.fail(ActionError.from_exception(e))
        except DatabaseError:
            logger.exception(f"{func.__name__} failed with a database error")
            return OperationResult.fail(ActionError(
                type=UNAVAILABLE,
                message="The service is temporarily unavailable, please try again",
                http_status=503,
            ))
    return wrapper


def _get_application(application_id):
    try:
        return ConcessionApplication.objects.select_related(
            'concession_booklet',
            'previous_application__concession_booklet',
        ).get(pk=application_id)
    except (ConcessionApplication.DoesNotExist, ValueError, ValidationError):
        raise NotFoundError("Application not found", field='application_id')


# =============================================================================
# BOOKLET ACTIONS
# =============================================================================

@action_result
def create_booklet(serial_start, overlay_template_ref='', status='AVAILABLE', anchor_x=0, anchor_y=0):
    return BookletService.create_booklet(
        serial_start,
        overlay_template_ref=overlay_template_ref,
        initial_status=status,
        anchor_x=anchor_x,
        anchor_y=anchor_y,
    )


@action_result
def update_booklet(booklet_id, serial_start, is_damaged, overlay_template_ref=None, anchor_x=None, anchor_y=None):
    return BookletService.update_booklet(
        booklet_id,
        serial_start,
        is_damaged,
        overlay_template_ref=overlay_template_ref,
        anchor_x=anchor_x,
        anchor_y=anchor_y,
    )


@action_result
def delete_booklet(booklet_id):
    return BookletService.delete_booklet(booklet_id)


@action_result
def update_damaged_pages(booklet_id, pages):
    return BookletService.update_damaged_pages(booklet_id, pages)


@action_result
def list_allocatable_booklets():
    """Allocatable booklets, each annotated with bound_count and last_used_at."""
    return list(BookletService.list_allocatable_booklets())


# =============================================================================
# APPLICATION ACTIONS
# =============================================================================

@action_result
def submit_application(student_id, application_type='NEW', station='', concession_class='SECOND',
                       concession_period='MONTHLY'):
    try:
        student = Student.objects.get(pk=student_id)
    except (Student.DoesNotExist, ValueError, ValidationError):
        raise NotFoundError("Student not found", field='student_id')

    return ApplicationService.submit_application(
        student,
        application_type=application_type,
        station=station,
        concession_class=concession_class,
        concession_period=concession_period,
    )


@action_result
def approve_with_booklet(application_id, booklet_id, reviewed_by=None):
    """
    Approve an application onto the next free page of a booklet.

    Returns data: {'application', 'certificate_number', 'page_offset'}
    """
    allocation = AllocationService.allocate(application_id, booklet_id, reviewed_by=reviewed_by)
    return {
        'application': allocation.application,
        'certificate_number': allocation.certificate_number,
        'page_offset': allocation.page_offset,
    }


@action_result
def reject_application(application_id, reason, reviewed_by=None):
    return ApplicationService.reject_application(application_id, reason, reviewed_by=reviewed_by)


# =============================================================================
# CERTIFICATE ACTIONS
# =============================================================================

@action_result
def certificate_number(application_id):
    return CertificateService.certificate_for(_get_application(application_id))


@action_result
def current_pass_number(application_id):
    return CertificateService.current_pass_for(_get_application(application_id))
