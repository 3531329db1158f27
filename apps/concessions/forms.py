# concessions/forms.py

"""
Input forms for the booklet and review endpoints.

Forms only check shape (required fields, types, serial syntax); range,
overlap and allocation rules are enforced by the services.
"""

from django import forms
from django.core.exceptions import ValidationError
import logging

from .exceptions import FormatError
from .models import ConcessionApplication
from .serials import normalize_serial, serial_range

logger = logging.getLogger(__name__)


# =============================================================================
# BOOKLET FORMS
# =============================================================================

class BookletSerialFieldMixin:
    """Normalize and syntax-check serial_start_number"""

    def clean_serial_start_number(self):
        serial = normalize_serial(self.cleaned_data.get('serial_start_number'))
        try:
            serial_range(serial)
        except FormatError as e:
            raise ValidationError(e.message)
        return serial


class BookletCreateForm(BookletSerialFieldMixin, forms.Form):
    """Register a new booklet"""

    INITIAL_STATUS_CHOICES = (
        ('AVAILABLE', 'Available'),
        ('DAMAGED', 'Damaged'),
    )

    serial_start_number = forms.CharField(
        max_length=32,
        widget=forms.TextInput(attrs={
            'placeholder': 'e.g., A0807550',
            'style': 'text-transform: uppercase;'
        })
    )
    overlay_template_ref = forms.CharField(max_length=255, required=False)
    status = forms.ChoiceField(choices=INITIAL_STATUS_CHOICES, initial='AVAILABLE', required=False)
    anchor_x = forms.FloatField(required=False, initial=0)
    anchor_y = forms.FloatField(required=False, initial=0)

    def clean_status(self):
        return self.cleaned_data.get('status') or 'AVAILABLE'


class BookletUpdateForm(BookletSerialFieldMixin, forms.Form):
    """Re-range a booklet or change its damage flag and print settings"""

    serial_start_number = forms.CharField(max_length=32)
    is_damaged = forms.BooleanField(required=False)
    overlay_template_ref = forms.CharField(max_length=255, required=False, empty_value=None)
    anchor_x = forms.FloatField(required=False)
    anchor_y = forms.FloatField(required=False)


class DamagedPagesForm(forms.Form):
    """Replace the damaged page offsets of a booklet"""

    pages = forms.JSONField(required=False)

    def clean_pages(self):
        pages = self.cleaned_data.get('pages')
        if pages in (None, ''):
            return []
        if not isinstance(pages, list):
            raise ValidationError("Pages must be a list of page offsets")
        for page in pages:
            if isinstance(page, bool) or not isinstance(page, int):
                raise ValidationError("Page offsets must be whole numbers")
        return pages


# =============================================================================
# REVIEW FORMS
# =============================================================================

class ApproveApplicationForm(forms.Form):
    booklet_id = forms.UUIDField()


class RejectApplicationForm(forms.Form):
    rejection_reason = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}))

    def clean_rejection_reason(self):
        reason = self.cleaned_data.get('rejection_reason', '').strip()
        if not reason:
            raise ValidationError("A rejection reason is required")
        return reason


class ApplicationSubmitForm(forms.Form):
    student_id = forms.UUIDField()
    application_type = forms.ChoiceField(choices=ConcessionApplication.APPLICATION_TYPE_CHOICES, initial='NEW')
    station = forms.CharField(max_length=100, required=False)
    concession_class = forms.ChoiceField(
        choices=ConcessionApplication.CONCESSION_CLASS_CHOICES,
        initial='SECOND',
        required=False
    )
    concession_period = forms.ChoiceField(
        choices=ConcessionApplication.CONCESSION_PERIOD_CHOICES,
        initial='MONTHLY',
        required=False
    )

    def clean(self):
        cleaned_data = super().clean()
        cleaned_data['concession_class'] = cleaned_data.get('concession_class') or 'SECOND'
        cleaned_data['concession_period'] = cleaned_data.get('concession_period') or 'MONTHLY'
        return cleaned_data
