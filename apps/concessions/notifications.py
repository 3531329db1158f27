# concessions/notifications.py

"""
Review notifications.

Delivery (push, email, in-app) lives outside this project; receivers
connect to ``concession_reviewed``. Dispatch happens only after the review
transaction commits and a failing receiver never undoes the review.
"""

from django.conf import settings
from django.db import transaction
from django.dispatch import Signal
import logging

from utils.utils import get_write_db

logger = logging.getLogger(__name__)

# Sent with: application, status, certificate_number (None unless approved)
concession_reviewed = Signal()


def dispatch_concession_reviewed(application, certificate_number=None):
    """Send concession_reviewed now, logging (not raising) receiver errors."""
    responses = concession_reviewed.send_robust(
        sender=application.__class__,
        application=application,
        status=application.status,
        certificate_number=certificate_number,
    )

    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.error(
                f"Notification receiver {getattr(receiver, '__qualname__', receiver)} failed "
                f"for application #{application.short_id}: {response}",
                exc_info=response,
            )
    return responses


def notify_concession_reviewed(application, certificate_number=None):
    """Schedule concession_reviewed for when the current transaction commits."""
    if not getattr(settings, 'CONCESSION_NOTIFICATIONS_ENABLED', True):
        return

    transaction.on_commit(
        lambda: dispatch_concession_reviewed(application, certificate_number),
        using=get_write_db(application.__class__, instance=application),
    )
