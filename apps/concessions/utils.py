# concessions/utils.py

"""
Concession Utility Functions

Contains:
- Serial range overlap detection
- Sequential number generation (booklet numbers, application numbers)
- Booklet status derivation
"""

from django.db.models import Max
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# RANGE VALIDATION
# =============================================================================

def ranges_overlap(a_start, a_end, b_start, b_end):
    """
    Check whether two inclusive serial ranges share at least one serial.

    Ranges with different prefixes never overlap. Numbers are compared by
    value, so A0807550 and A807550 are treated as the same serial.

    Args:
        a_start, a_end: Serial bounds of the first range
        b_start, b_end: Serial bounds of the second range

    Returns:
        bool
    """
    if a_start.prefix != b_start.prefix:
        return False
    return a_start.number <= b_end.number and b_start.number <= a_end.number


def find_overlapping_booklet(candidate_start, candidate_end, existing):
    """
    Return the first booklet whose range collides with the candidate range.

    Covers partial overlap on either edge and containment in both
    directions, all of which reduce to the inclusive interval test.

    Args:
        candidate_start: Serial where the new range begins
        candidate_end: Serial where the new range ends
        existing: Iterable of ConcessionBooklet instances to check against

    Returns:
        ConcessionBooklet or None
    """
    for booklet in existing:
        if ranges_overlap(candidate_start, candidate_end, booklet.start_serial, booklet.end_serial):
            return booklet
    return None


# =============================================================================
# NUMBER GENERATION
# =============================================================================

def generate_booklet_number():
    """
    Next booklet display number (max + 1, never reused).

    Must be called inside the transaction that saves the booklet; a
    concurrent duplicate is rejected by the unique constraint.
    """
    from concessions.models import ConcessionBooklet

    result = ConcessionBooklet.objects.aggregate(max_number=Max('booklet_number'))
    return (result['max_number'] or 0) + 1


def generate_application_short_id():
    """Next sequential application number shown to students."""
    from concessions.models import ConcessionApplication

    result = ConcessionApplication.objects.aggregate(max_number=Max('short_id'))
    return (result['max_number'] or 0) + 1


# =============================================================================
# STATUS DERIVATION
# =============================================================================

def calculate_booklet_status(bound_count, total_pages, is_damaged, damaged_pages_count=0):
    """
    Derive a booklet's lifecycle status.

    Args:
        bound_count: Applications bound to the booklet
        total_pages: Pages in the booklet
        is_damaged: Manual damage flag
        damaged_pages_count: Spoiled pages that can never be bound

    Returns:
        str: 'DAMAGED', 'AVAILABLE', 'IN_USE' or 'EXHAUSTED'

    Example:
        >>> calculate_booklet_status(0, 50, False)
        'AVAILABLE'
        >>> calculate_booklet_status(48, 50, False, damaged_pages_count=2)
        'EXHAUSTED'
    """
    if is_damaged:
        return 'DAMAGED'
    if bound_count == 0:
        return 'AVAILABLE'
    if bound_count + damaged_pages_count < total_pages:
        return 'IN_USE'
    return 'EXHAUSTED'


def get_booklet_usage_summary(booklet):
    """Usage figures for a booklet, for list views and the register export."""
    damaged = booklet.get_damaged_pages()
    used = booklet.applications_count
    return {
        'total_pages': booklet.total_pages,
        'used_pages': used,
        'damaged_pages': len(damaged),
        'free_pages': booklet.free_pages_count(),
        'usage_percentage': round(used / booklet.total_pages * 100, 1) if booklet.total_pages else 0,
    }
