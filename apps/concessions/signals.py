# concessions/signals.py

"""
Concession Signals

Automatic triggers for:
- Booklet numbering and structured serial fields on save
- Application numbering
- Logging of review notifications
"""

from django.db.models.signals import pre_save
from django.dispatch import receiver
import logging

from .models import ConcessionBooklet, ConcessionApplication
from .notifications import concession_reviewed
from .serials import normalize_serial, serial_range
from .utils import generate_booklet_number, generate_application_short_id

logger = logging.getLogger(__name__)


# =============================================================================
# BOOKLET SIGNALS
# =============================================================================

@receiver(pre_save, sender=ConcessionBooklet)
def concession_booklet_pre_save(sender, instance, **kwargs):
    """
    Pre-save processing for booklets saved outside BookletService.
    - Derive the structured serial fields from serial_start_number
    - Generate the booklet number if not set
    """
    if kwargs.get('raw', False):
        return

    if instance.serial_start_number:
        in_sync = (
            instance.serial_prefix
            and instance.serial_start_value is not None
            and instance.serial_width
            and str(instance.start_serial) == instance.serial_start_number
        )
        if not in_sync:
            start, end = serial_range(normalize_serial(instance.serial_start_number), instance.total_pages)
            instance.set_serial_range(start, end)

    if not instance.booklet_number:
        instance.booklet_number = generate_booklet_number()
        logger.info(f"Generated booklet number: {instance.booklet_number}")


# =============================================================================
# APPLICATION SIGNALS
# =============================================================================

@receiver(pre_save, sender=ConcessionApplication)
def concession_application_pre_save(sender, instance, **kwargs):
    if kwargs.get('raw', False):
        return

    if not instance.short_id:
        instance.short_id = generate_application_short_id()


@receiver(concession_reviewed)
def log_concession_reviewed(sender, application, status, certificate_number=None, **kwargs):
    """Record every review outcome; delivery channels connect their own receivers."""
    if certificate_number:
        logger.info(
            f"Concession application #{application.short_id} {status.lower()}, "
            f"certificate {certificate_number}"
        )
    else:
        logger.info(f"Concession application #{application.short_id} {status.lower()}")
