# concessions/exceptions.py

"""
Error taxonomy for the booklet allocator.

Services raise these; concessions.actions turns them into typed failures
and the JSON views map ``http_status`` onto the response.
"""

from django.core.exceptions import ValidationError


class ConcessionError(ValidationError):
    """Base class for every refused booklet or application operation."""

    error_type = 'VALIDATION'
    http_status = 400
    default_field = None

    def __init__(self, message, field=None, code=None):
        super().__init__(message, code=code or self.error_type.lower())
        self.field = field or self.default_field

    def __str__(self):
        return self.message


class FormatError(ConcessionError):
    """Serial string is not letters followed by digits, or its range overflows."""
    error_type = 'FORMAT'
    default_field = 'serial_start_number'


class DuplicateError(ConcessionError):
    error_type = 'DUPLICATE'
    http_status = 409
    default_field = 'serial_start_number'


class OverlapError(ConcessionError):
    error_type = 'OVERLAP'
    http_status = 409
    default_field = 'serial_start_number'

    def __init__(self, message, conflicting_booklet=None, field=None):
        super().__init__(message, field=field)
        self.conflicting_booklet = conflicting_booklet


class ExhaustedError(ConcessionError):
    """Booklet is damaged or has no free page left."""
    error_type = 'EXHAUSTED'
    http_status = 409
    default_field = 'booklet_id'


class NotFoundError(ConcessionError):
    error_type = 'NOT_FOUND'
    http_status = 404


class ConflictError(ConcessionError):
    """Another session changed the same rows first; the caller may retry."""
    error_type = 'CONFLICT'
    http_status = 409


class ApplicationStateError(ConcessionError):
    error_type = 'INVALID_STATE'
    http_status = 409
    default_field = 'status'


class NotAllocatedError(ConcessionError):
    error_type = 'NOT_ALLOCATED'
    default_field = 'concession_booklet'


class BookletInUseError(ConcessionError):
    error_type = 'IN_USE'
    http_status = 409


class DamagedPageError(ConcessionError):
    error_type = 'DAMAGED_PAGE'
    default_field = 'damaged_pages'
