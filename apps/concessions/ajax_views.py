# concessions/ajax_views.py

from functools import wraps
import json
import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from utils.utils import paginate_queryset, pagination_payload, parse_filters
from . import actions
from .forms import (
    BookletCreateForm,
    BookletUpdateForm,
    DamagedPagesForm,
    ApproveApplicationForm,
    RejectApplicationForm,
    ApplicationSubmitForm,
)
from .models import ConcessionBooklet
from .services import BookletService, CertificateService
from .utils import get_booklet_usage_summary

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def staff_required_json(view_func):
    """Only authenticated staff may call the concession endpoints."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"success": False, "message": "Authentication required."}, status=401)
        if not request.user.is_staff:
            return JsonResponse({"success": False, "message": "Staff access required."}, status=403)
        return view_func(request, *args, **kwargs)
    return wrapper


def _json_body(request):
    """Decoded JSON body, or None when it is not a JSON object."""
    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _invalid_json():
    return JsonResponse({"success": False, "message": "Invalid JSON data."}, status=400)


def _form_error_response(form):
    first_error = next(iter(form.errors.values()))[0]
    return JsonResponse(
        {"success": False, "message": first_error, "errors": form.errors},
        status=400
    )


def _failure_response(result):
    return JsonResponse(
        {"success": False, "message": result.error.message, "error": result.error.to_dict()},
        status=result.error.http_status
    )


def booklet_to_dict(booklet):
    data = {
        'id': str(booklet.id),
        'booklet_number': booklet.booklet_number,
        'serial_start_number': booklet.serial_start_number,
        'serial_end_number': booklet.serial_end_number,
        'status': booklet.status,
        'status_display': booklet.get_status_display(),
        'is_damaged': booklet.is_damaged,
        'is_allocatable': booklet.is_allocatable(),
        'damaged_pages': booklet.get_damaged_pages(),
        'overlay_template_ref': booklet.overlay_template_ref,
        'overlay_configured': booklet.overlay_configured,
        'anchor_x': booklet.anchor_x,
        'anchor_y': booklet.anchor_y,
        'usage': get_booklet_usage_summary(booklet),
    }
    if hasattr(booklet, 'bound_count'):
        data['bound_count'] = booklet.bound_count
    if hasattr(booklet, 'last_used_at'):
        data['last_used_at'] = booklet.last_used_at.isoformat() if booklet.last_used_at else None
    return data


def application_to_dict(application):
    return {
        'id': str(application.id),
        'short_id': application.short_id,
        'student': str(application.student_id),
        'application_type': application.application_type,
        'status': application.status,
        'status_display': application.get_status_display(),
        'booklet_id': str(application.concession_booklet_id) if application.concession_booklet_id else None,
        'page_offset': application.page_offset,
        'submission_count': application.submission_count,
        'reviewed_at': application.reviewed_at.isoformat() if application.reviewed_at else None,
        'rejection_reason': application.rejection_reason,
    }


# =============================================================================
# BOOKLET ENDPOINTS
# =============================================================================

@staff_required_json
@require_http_methods(["GET"])
def booklet_list(request):
    """Booklets filtered by ?q= (serial or booklet number) and ?status=, paginated."""
    filters = parse_filters(request, ['q', 'status'])
    booklets = BookletService.search_booklets(query=filters['q'], status=filters['status'])

    page_obj, paginator = paginate_queryset(request, booklets, per_page=20)

    return JsonResponse({
        "success": True,
        "booklets": [booklet_to_dict(b) for b in page_obj],
        "pagination": pagination_payload(page_obj, paginator),
    })


@staff_required_json
@require_http_methods(["GET"])
def allocatable_booklets(request):
    result = actions.list_allocatable_booklets()
    if not result.success:
        return _failure_response(result)

    return JsonResponse({
        "success": True,
        "booklets": [booklet_to_dict(b) for b in result.data],
    })


@staff_required_json
@require_http_methods(["POST"])
def booklet_create(request):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = BookletCreateForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    cleaned = form.cleaned_data
    result = actions.create_booklet(
        cleaned['serial_start_number'],
        overlay_template_ref=cleaned['overlay_template_ref'],
        status=cleaned['status'],
        anchor_x=cleaned['anchor_x'] or 0,
        anchor_y=cleaned['anchor_y'] or 0,
    )
    if not result.success:
        return _failure_response(result)

    booklet = result.data
    return JsonResponse(
        {
            "success": True,
            "message": f"Booklet #{booklet.booklet_number} created successfully",
            "booklet": booklet_to_dict(booklet),
        },
        status=201
    )


@staff_required_json
@require_http_methods(["POST"])
def booklet_update(request, booklet_id):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = BookletUpdateForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    cleaned = form.cleaned_data
    result = actions.update_booklet(
        booklet_id,
        cleaned['serial_start_number'],
        cleaned['is_damaged'],
        overlay_template_ref=cleaned['overlay_template_ref'],
        anchor_x=cleaned['anchor_x'],
        anchor_y=cleaned['anchor_y'],
    )
    if not result.success:
        return _failure_response(result)

    return JsonResponse({
        "success": True,
        "message": "Booklet updated successfully",
        "booklet": booklet_to_dict(result.data),
    })


@staff_required_json
@require_http_methods(["POST", "DELETE"])
def booklet_delete(request, booklet_id):
    result = actions.delete_booklet(booklet_id)
    if not result.success:
        return _failure_response(result)

    return JsonResponse({"success": True, "message": f"Booklet #{result.data} deleted"})


@staff_required_json
@require_http_methods(["POST"])
def booklet_damaged_pages(request, booklet_id):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = DamagedPagesForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    result = actions.update_damaged_pages(booklet_id, form.cleaned_data['pages'])
    if not result.success:
        return _failure_response(result)

    return JsonResponse({
        "success": True,
        "message": "Damaged pages updated",
        "booklet": booklet_to_dict(result.data),
    })


@staff_required_json
@require_http_methods(["GET"])
def booklet_pages(request, booklet_id):
    """Page register of a booklet: bound applications and damaged pages."""
    try:
        booklet = ConcessionBooklet.objects.get(pk=booklet_id)
    except ConcessionBooklet.DoesNotExist:
        return JsonResponse({"success": False, "message": "Booklet not found."}, status=404)

    pages = []
    for page in BookletService.get_booklet_pages(booklet):
        application = page['application']
        pages.append({
            'page_number': page['page_number'],
            'serial_number': page['serial_number'],
            'is_damaged': page['is_damaged'],
            'application': application_to_dict(application) if application else None,
            'student_name': application.student.get_full_name() if application else None,
            'current_pass': CertificateService.current_pass_for(application) if application else None,
        })

    return JsonResponse({
        "success": True,
        "booklet": booklet_to_dict(booklet),
        "pages": pages,
    })


# =============================================================================
# APPLICATION ENDPOINTS
# =============================================================================

@staff_required_json
@require_http_methods(["POST"])
def application_submit(request):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = ApplicationSubmitForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    cleaned = form.cleaned_data
    result = actions.submit_application(
        cleaned['student_id'],
        application_type=cleaned['application_type'],
        station=cleaned['station'],
        concession_class=cleaned['concession_class'],
        concession_period=cleaned['concession_period'],
    )
    if not result.success:
        return _failure_response(result)

    application = result.data
    return JsonResponse({
        "success": True,
        "message": f"Application #{application.short_id} submitted",
        "application": application_to_dict(application),
    })


@staff_required_json
@require_http_methods(["POST"])
def application_approve(request, application_id):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = ApproveApplicationForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    result = actions.approve_with_booklet(
        application_id,
        form.cleaned_data['booklet_id'],
        reviewed_by=request.user,
    )
    if not result.success:
        return _failure_response(result)

    return JsonResponse({
        "success": True,
        "message": f"Application approved with certificate {result.data['certificate_number']}",
        "certificate_number": result.data['certificate_number'],
        "page_offset": result.data['page_offset'],
        "application": application_to_dict(result.data['application']),
    })


@staff_required_json
@require_http_methods(["POST"])
def application_reject(request, application_id):
    data = _json_body(request)
    if data is None:
        return _invalid_json()

    form = RejectApplicationForm(data)
    if not form.is_valid():
        return _form_error_response(form)

    result = actions.reject_application(
        application_id,
        form.cleaned_data['rejection_reason'],
        reviewed_by=request.user,
    )
    if not result.success:
        return _failure_response(result)

    return JsonResponse({
        "success": True,
        "message": "Application rejected",
        "application": application_to_dict(result.data),
    })


@staff_required_json
@require_http_methods(["GET"])
def application_certificate(request, application_id):
    result = actions.certificate_number(application_id)
    if not result.success:
        return _failure_response(result)
    return JsonResponse({"success": True, "certificate_number": result.data})


@staff_required_json
@require_http_methods(["GET"])
def application_current_pass(request, application_id):
    result = actions.current_pass_number(application_id)
    if not result.success:
        return _failure_response(result)
    return JsonResponse({"success": True, "current_pass": result.data})
