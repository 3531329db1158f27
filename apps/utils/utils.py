# utils/utils.py

from django.core.paginator import Paginator, EmptyPage, PageNotAnInteger
from django.db import router

# =============================================================================
# CORE UTILITY HELPER FUNCTIONS
# =============================================================================

def get_write_db(model, instance=None):
    """
    Database alias writes to ``model`` go to.

    Services open ``transaction.atomic(using=...)`` on this alias so their
    row locks live on the connection that performs the writes.
    """
    return router.db_for_write(model, instance=instance)


def paginate_queryset(request, queryset, per_page=20):
    paginator = Paginator(queryset, per_page)
    page = request.GET.get('page', 1)
    try:
        page_obj = paginator.page(page)
    except PageNotAnInteger:
        page_obj = paginator.page(1)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages)
    return page_obj, paginator


def pagination_payload(page_obj, paginator):
    """Pagination block for JSON list responses."""
    return {
        'current_page': page_obj.number,
        'total_pages': paginator.num_pages,
        'total_count': paginator.count,
        'has_next': page_obj.has_next(),
        'has_previous': page_obj.has_previous(),
    }


def parse_filters(request, filter_keys):
    """
    Extract filter values from request.GET.
    filter_keys: list of filter names to extract
    Returns dict: {key: value or None}
    """
    filters = {}
    for key in filter_keys:
        value = request.GET.get(key, '').strip()
        filters[key] = value if value else None
    return filters
