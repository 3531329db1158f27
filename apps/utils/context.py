# utils/context.py

"""
Thread-local request context for the audit trail.

The audit middleware stores who is acting (and from where) for the
duration of a request; BaseModel.save() reads it back when stamping
created_by/updated_by and writing AuditLog rows. Management commands
and tests use RequestContext to act on behalf of a staff user.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def client_ip_from_request(request):
    """Return the originating client IP, honouring X-Forwarded-For."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def set_request_context(user=None, ip_address=None, user_agent=None, request_path=None, request=None):
    """
    Set the acting user and client details for this thread.

    Args:
        user: The authenticated user (anonymous users are stored as None)
        ip_address: Client IP address
        user_agent: Browser user agent string
        request_path: The request path
        request: A request object to read all of the above from
    """
    if request is not None:
        user = getattr(request, 'user', None)
        ip_address = client_ip_from_request(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')
        request_path = request.path

    if user is not None and not getattr(user, 'is_authenticated', False):
        user = None

    _thread_locals.request_context = {
        'user': user,
        'ip_address': ip_address,
        'user_agent': user_agent or '',
        'request_path': request_path or '',
    }

    logger.debug(f"Set request context: user={user}, ip={ip_address}")


def get_request_context():
    """Return the context dict for this thread, or None outside a request."""
    return getattr(_thread_locals, 'request_context', None)


def clear_request_context():
    if hasattr(_thread_locals, 'request_context'):
        delattr(_thread_locals, 'request_context')


def get_acting_user():
    """The user recorded in the current context, if any."""
    context = get_request_context()
    return context.get('user') if context else None


# ============================================================================
# CONTEXT MANAGER
# ============================================================================

class RequestContext:
    """
    Temporarily act as a given user outside the request cycle.

    Example:
        with RequestContext(user=clerk, request_path='manage.py'):
            BookletService.recalculate_all_statuses()
    """

    def __init__(self, user=None, ip_address=None, user_agent=None, request_path=None):
        self.context = {
            'user': user,
            'ip_address': ip_address,
            'user_agent': user_agent or '',
            'request_path': request_path or '',
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_request_context()
        _thread_locals.request_context = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context:
            _thread_locals.request_context = self.previous_context
        else:
            clear_request_context()
