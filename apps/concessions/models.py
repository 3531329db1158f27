# concessions/models.py

from django.db import models
from django.db.models import Q
from django.utils import timezone
from utils.models import BaseModel
from concessions.serials import Serial, format_serial, BOOKLET_TOTAL_PAGES

import logging

logger = logging.getLogger(__name__)


# =============================================================================
# CONCESSION BOOKLET MODEL
# =============================================================================

class ConcessionBooklet(BaseModel):
    """
    A physical booklet of pre-printed concession certificate pages.

    Each booklet covers a contiguous serial range (e.g. A0807550 - A0807599).
    Approved applications are bound to one page each, in page order.
    """

    # -------------------------------------------------------------------------
    # CHOICE FIELDS
    # -------------------------------------------------------------------------

    STATUS_CHOICES = (
        ('AVAILABLE', 'Available'),
        ('IN_USE', 'In Use'),
        ('EXHAUSTED', 'Exhausted'),
        ('DAMAGED', 'Damaged'),
    )

    ALLOCATABLE_STATUSES = ('AVAILABLE', 'IN_USE')

    # -------------------------------------------------------------------------
    # IDENTITY & SERIAL RANGE
    # -------------------------------------------------------------------------

    booklet_number = models.PositiveIntegerField(
        "Booklet Number",
        unique=True,
        editable=False,
        help_text="Display sequence, assigned once at registration"
    )

    serial_start_number = models.CharField("Serial Start", max_length=32, unique=True)
    serial_end_number = models.CharField("Serial End", max_length=32, unique=True)

    serial_prefix = models.CharField("Serial Prefix", max_length=16, db_index=True, editable=False)
    serial_start_value = models.BigIntegerField("Serial Start Value", editable=False)
    serial_end_value = models.BigIntegerField("Serial End Value", editable=False)
    serial_width = models.PositiveSmallIntegerField("Serial Width", editable=False)

    total_pages = models.PositiveSmallIntegerField("Total Pages", default=BOOKLET_TOTAL_PAGES, editable=False)

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    status = models.CharField(
        "Status",
        max_length=10,
        choices=STATUS_CHOICES,
        default='AVAILABLE',
        db_index=True,
        editable=False,
        help_text="Derived from bound pages and the damage flag"
    )
    is_damaged = models.BooleanField("Damaged", default=False)

    applications_count = models.PositiveSmallIntegerField(
        "Bound Applications",
        default=0,
        editable=False,
        help_text="Cached count, refreshed on every allocation"
    )
    next_page_offset = models.PositiveSmallIntegerField(
        "Next Page Offset",
        default=0,
        editable=False,
        help_text="Allocation cursor; pages before it are never handed out again"
    )
    damaged_pages = models.JSONField(
        "Damaged Pages",
        default=list,
        blank=True,
        help_text="0-based offsets of spoiled pages the allocator skips"
    )

    # -------------------------------------------------------------------------
    # PRINT OVERLAY
    # -------------------------------------------------------------------------

    overlay_template_ref = models.CharField("Overlay Template", max_length=255, blank=True)
    overlay_configured = models.BooleanField("Overlay Configured", default=False)
    anchor_x = models.FloatField("Anchor X", default=0)
    anchor_y = models.FloatField("Anchor Y", default=0)

    class Meta:
        ordering = ['-booklet_number']
        verbose_name = "Concession Booklet"
        verbose_name_plural = "Concession Booklets"
        indexes = [
            models.Index(fields=['serial_prefix', 'serial_start_value'], name='concessions_serial_range_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(serial_end_value__gte=models.F('serial_start_value')),
                name='booklet_serial_range_ordered'
            ),
            models.CheckConstraint(
                condition=Q(next_page_offset__lte=models.F('total_pages')),
                name='booklet_cursor_within_pages'
            ),
        ]

    def __str__(self):
        return f"Booklet #{self.booklet_number} ({self.serial_start_number} - {self.serial_end_number})"

    # -------------------------------------------------------------------------
    # SERIAL HELPERS
    # -------------------------------------------------------------------------

    @property
    def start_serial(self):
        return Serial(self.serial_prefix, self.serial_start_value, self.serial_width)

    @property
    def end_serial(self):
        return Serial(self.serial_prefix, self.serial_end_value, self.serial_width)

    def serial_at(self, page_offset):
        """Serial printed on the page at ``page_offset``."""
        return format_serial(self.serial_prefix, self.serial_start_value + page_offset, self.serial_width)

    def set_serial_range(self, start, end):
        """Store a parsed (start, end) pair in both string and structured form."""
        self.serial_start_number = str(start)
        self.serial_end_number = str(end)
        self.serial_prefix = start.prefix
        self.serial_start_value = start.number
        self.serial_end_value = end.number
        self.serial_width = start.width

    # -------------------------------------------------------------------------
    # PAGE HELPERS
    # -------------------------------------------------------------------------

    def get_damaged_pages(self):
        return sorted(set(self.damaged_pages or []))

    def free_pages_count(self):
        """Pages at or after the cursor that are not spoiled."""
        damaged = set(self.get_damaged_pages())
        return sum(
            1 for offset in range(self.next_page_offset, self.total_pages)
            if offset not in damaged
        )

    def next_free_offset(self):
        """First non-damaged offset at or after the cursor, or None when full."""
        damaged = set(self.get_damaged_pages())
        for offset in range(self.next_page_offset, self.total_pages):
            if offset not in damaged:
                return offset
        return None

    def is_allocatable(self):
        return self.status in self.ALLOCATABLE_STATUSES and not self.is_damaged


# =============================================================================
# SERIAL SERIES LOCK MODEL
# =============================================================================

class BookletSerialSeries(models.Model):
    """
    One row per serial prefix.

    Locked while a booklet of that prefix is registered or re-ranged so the
    overlap check and the write happen as one serialized step.
    """

    prefix = models.CharField("Prefix", max_length=16, unique=True)
    created_at = models.DateTimeField("Created At", default=timezone.now)

    class Meta:
        verbose_name = "Booklet Serial Series"
        verbose_name_plural = "Booklet Serial Series"

    def __str__(self):
        return self.prefix


# =============================================================================
# CONCESSION APPLICATION MODEL
# =============================================================================

class ConcessionApplication(BaseModel):
    """A student's request for a railway concession certificate"""

    # -------------------------------------------------------------------------
    # CHOICE FIELDS
    # -------------------------------------------------------------------------

    APPLICATION_TYPE_CHOICES = (
        ('NEW', 'New'),
        ('RENEWAL', 'Renewal'),
    )

    STATUS_CHOICES = (
        ('PENDING', 'Pending'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
    )

    CONCESSION_CLASS_CHOICES = (
        ('FIRST', 'First Class'),
        ('SECOND', 'Second Class'),
    )

    CONCESSION_PERIOD_CHOICES = (
        ('MONTHLY', 'Monthly'),
        ('QUARTERLY', 'Quarterly'),
    )

    # -------------------------------------------------------------------------
    # APPLICATION DETAILS
    # -------------------------------------------------------------------------

    short_id = models.PositiveIntegerField(
        "Application No.",
        unique=True,
        editable=False,
        help_text="Sequential number shown to students and staff"
    )
    student = models.ForeignKey(
        'students.Student',
        on_delete=models.PROTECT,
        related_name='concession_applications',
        verbose_name="Student"
    )
    application_type = models.CharField(
        "Application Type",
        max_length=10,
        choices=APPLICATION_TYPE_CHOICES,
        default='NEW'
    )
    status = models.CharField(
        "Status",
        max_length=10,
        choices=STATUS_CHOICES,
        default='PENDING',
        db_index=True
    )

    station = models.CharField("Home Station", max_length=100, blank=True)
    concession_class = models.CharField(
        "Class",
        max_length=10,
        choices=CONCESSION_CLASS_CHOICES,
        default='SECOND'
    )
    concession_period = models.CharField(
        "Period",
        max_length=10,
        choices=CONCESSION_PERIOD_CHOICES,
        default='MONTHLY'
    )

    # -------------------------------------------------------------------------
    # BOOKLET BINDING
    # -------------------------------------------------------------------------

    concession_booklet = models.ForeignKey(
        ConcessionBooklet,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='applications',
        verbose_name="Booklet"
    )
    page_offset = models.PositiveSmallIntegerField(
        "Page Offset",
        null=True,
        blank=True,
        help_text="0-based page of the booklet; set once at approval"
    )
    previous_application = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='renewals',
        verbose_name="Previous Application"
    )

    # -------------------------------------------------------------------------
    # REVIEW
    # -------------------------------------------------------------------------

    submission_count = models.PositiveSmallIntegerField("Submissions", default=1)
    reviewed_at = models.DateTimeField("Reviewed At", null=True, blank=True)
    reviewed_by_id = models.CharField("Reviewed By ID", max_length=50, null=True, blank=True)
    rejection_reason = models.TextField("Rejection Reason", blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Concession Application"
        verbose_name_plural = "Concession Applications"
        indexes = [
            models.Index(fields=['student', 'status'], name='concessions_student_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['concession_booklet', 'page_offset'],
                name='unique_booklet_page'
            ),
            models.CheckConstraint(
                condition=(
                    Q(concession_booklet__isnull=True, page_offset__isnull=True)
                    | Q(concession_booklet__isnull=False, page_offset__isnull=False, status='APPROVED')
                ),
                name='booklet_page_bound_on_approval'
            ),
        ]

    def __str__(self):
        return f"Application #{self.short_id} - {self.student} ({self.get_status_display()})"

    def is_pending(self):
        return self.status == 'PENDING'

    def is_bound(self):
        return self.concession_booklet_id is not None and self.page_offset is not None

    @property
    def page_number(self):
        """1-based page number within the booklet"""
        return self.page_offset + 1 if self.page_offset is not None else None
