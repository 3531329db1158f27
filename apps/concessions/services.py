# concessions/services.py

"""
Concession Booklet Services

Handles the booklet serial-space workflows:
- Booklet registration, re-ranging and deletion with overlap protection
- Damaged page bookkeeping and derived status recomputation
- Allocation of the next free booklet page to an approved application
- Certificate number derivation, including renewal continuity
- Application submission and rejection
"""

from dataclasses import dataclass
from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError, OperationalError
from django.db.models import Case, When, Value, IntegerField, Count, Max, Q
from django.utils import timezone
import logging

from utils.context import get_acting_user
from utils.utils import get_write_db
from .models import ConcessionBooklet, ConcessionApplication, BookletSerialSeries
from .exceptions import (
    ConcessionError,
    DuplicateError,
    OverlapError,
    ExhaustedError,
    NotFoundError,
    ConflictError,
    ApplicationStateError,
    NotAllocatedError,
    BookletInUseError,
    DamagedPageError,
)
from .serials import normalize_serial, serial_range, default_total_pages
from .notifications import notify_concession_reviewed
from .utils import (
    calculate_booklet_status,
    find_overlapping_booklet,
    generate_booklet_number,
    generate_application_short_id,
)

logger = logging.getLogger(__name__)


def _get_for_update(model, pk, label):
    """Fetch and row-lock ``model`` by primary key or raise NotFoundError."""
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, ValueError, ValidationError):
        raise NotFoundError(f"{label} not found", field=f"{label.lower()}_id")


def _user_id(user):
    user = user or get_acting_user()
    return str(user.pk) if user is not None else None


@dataclass(frozen=True)
class Allocation:
    application: ConcessionApplication
    page_offset: int
    certificate_number: str


# =============================================================================
# BOOKLET SERVICE
# =============================================================================

class BookletService:
    """Booklet registry: serial ranges, damage and derived status"""

    INITIAL_STATUSES = ('AVAILABLE', 'DAMAGED')

    # -------------------------------------------------------------------------
    # RANGE CHECKS
    # -------------------------------------------------------------------------

    @staticmethod
    def _lock_series(prefix):
        """Serialize range writes for one prefix on its BookletSerialSeries row."""
        series, created = BookletSerialSeries.objects.get_or_create(prefix=prefix)
        if created:
            logger.info(f"Registered new serial series {prefix}")
        return BookletSerialSeries.objects.select_for_update().get(pk=series.pk)

    @staticmethod
    def _check_range(start, end, exclude_id=None):
        """
        Refuse a range that duplicates or overlaps a registered booklet.

        Raises:
            DuplicateError: Another booklet starts at the same serial
            OverlapError: Another booklet shares at least one serial
        """
        candidates = ConcessionBooklet.objects.filter(serial_prefix=start.prefix)
        if exclude_id is not None:
            candidates = candidates.exclude(pk=exclude_id)

        duplicate = candidates.filter(serial_start_number=str(start)).first()
        if duplicate:
            raise DuplicateError(
                f"A booklet with this serial start number already exists "
                f"(booklet #{duplicate.booklet_number})"
            )

        nearby = candidates.filter(
            serial_start_value__lte=end.number,
            serial_end_value__gte=start.number,
        ).order_by('booklet_number')

        conflict = find_overlapping_booklet(start, end, nearby)
        if conflict:
            raise OverlapError(
                f"Serial number range {start} - {end} overlaps with booklet "
                f"#{conflict.booklet_number} ({conflict.serial_start_number} - {conflict.serial_end_number})",
                conflicting_booklet=conflict,
            )

    @staticmethod
    def _apply_status(booklet):
        """Recount bound applications and set the derived status in memory."""
        bound_count = booklet.applications.filter(status='APPROVED').count()
        booklet.applications_count = bound_count
        booklet.status = calculate_booklet_status(
            bound_count,
            booklet.total_pages,
            booklet.is_damaged,
            damaged_pages_count=len(booklet.get_damaged_pages()),
        )
        return booklet.status

    # -------------------------------------------------------------------------
    # REGISTRATION
    # -------------------------------------------------------------------------

    @staticmethod
    def create_booklet(serial_start, overlay_template_ref='', initial_status='AVAILABLE', anchor_x=0, anchor_y=0):
        """
        Register a new booklet.

        Args:
            serial_start: First serial of the booklet, e.g. "A0807550"
            overlay_template_ref: Reference to the print overlay asset
            initial_status: 'AVAILABLE' or 'DAMAGED'
            anchor_x: Horizontal print registration offset
            anchor_y: Vertical print registration offset

        Returns:
            ConcessionBooklet

        Raises:
            FormatError: Serial is malformed or its range overflows the digit width
            DuplicateError: A booklet already starts at this serial
            OverlapError: The range collides with a registered booklet
            ConflictError: A concurrent registration took the same booklet number

        Example:
            >>> booklet = BookletService.create_booklet("a 0807550")
            >>> booklet.serial_end_number
            'A0807599'
        """
        if initial_status not in BookletService.INITIAL_STATUSES:
            raise ConcessionError(
                f"A new booklet can only be {' or '.join(BookletService.INITIAL_STATUSES)}",
                field='status',
            )

        total_pages = default_total_pages()
        start, end = serial_range(normalize_serial(serial_start), total_pages)

        db = get_write_db(ConcessionBooklet)
        with transaction.atomic(using=db):
            BookletService._lock_series(start.prefix)
            BookletService._check_range(start, end)

            is_damaged = initial_status == 'DAMAGED'
            booklet = ConcessionBooklet(
                total_pages=total_pages,
                is_damaged=is_damaged,
                status=calculate_booklet_status(0, total_pages, is_damaged),
                applications_count=0,
                next_page_offset=0,
                damaged_pages=[],
                overlay_template_ref=overlay_template_ref or '',
                overlay_configured=False,
                anchor_x=anchor_x or 0,
                anchor_y=anchor_y or 0,
            )
            booklet.set_serial_range(start, end)
            booklet.booklet_number = generate_booklet_number()

            try:
                with transaction.atomic(using=db):
                    booklet.save()
            except IntegrityError:
                logger.warning(f"Concurrent registration collided on booklet for {start}")
                raise ConflictError("Another booklet was registered at the same time, please retry")

        logger.info(
            f"Created booklet #{booklet.booklet_number} "
            f"({booklet.serial_start_number} - {booklet.serial_end_number})"
        )
        return booklet

    @staticmethod
    def update_booklet(booklet_id, serial_start, is_damaged, overlay_template_ref=None, anchor_x=None, anchor_y=None):
        """
        Re-range a booklet and/or change its damage flag and print settings.

        The same format, duplicate and overlap checks as registration apply,
        ignoring the booklet's own current range. Status is recomputed.

        Returns:
            ConcessionBooklet
        """
        start, end = serial_range(normalize_serial(serial_start), default_total_pages())

        with transaction.atomic(using=get_write_db(ConcessionBooklet)):
            booklet = _get_for_update(ConcessionBooklet, booklet_id, 'Booklet')

            if str(start) != booklet.serial_start_number:
                BookletService._lock_series(start.prefix)
                BookletService._check_range(start, end, exclude_id=booklet.pk)

                if booklet.applications.exists():
                    logger.warning(
                        f"Re-ranging booklet #{booklet.booklet_number} with bound applications: "
                        f"{booklet.serial_start_number} -> {start}"
                    )
                    booklet.set_change_reason(
                        f"Re-ranged from {booklet.serial_start_number} with bound applications"
                    )
                booklet.set_serial_range(start, end)

            booklet.is_damaged = bool(is_damaged)

            if overlay_template_ref is not None:
                booklet.overlay_template_ref = overlay_template_ref
                booklet.overlay_configured = bool(overlay_template_ref)
            if anchor_x is not None:
                booklet.anchor_x = anchor_x
            if anchor_y is not None:
                booklet.anchor_y = anchor_y

            BookletService._apply_status(booklet)
            booklet.save()

        logger.info(f"Updated booklet #{booklet.booklet_number} (status {booklet.status})")
        return booklet

    @staticmethod
    def delete_booklet(booklet_id):
        """
        Delete a booklet that has no bound applications.

        Returns:
            int: The deleted booklet's number

        Raises:
            NotFoundError, BookletInUseError
        """
        with transaction.atomic(using=get_write_db(ConcessionBooklet)):
            booklet = _get_for_update(ConcessionBooklet, booklet_id, 'Booklet')

            if booklet.applications.exists():
                raise BookletInUseError(
                    f"Cannot delete booklet #{booklet.booklet_number}, it has applications"
                )

            booklet_number = booklet.booklet_number
            booklet.delete()

        logger.info(f"Deleted booklet #{booklet_number}")
        return booklet_number

    # -------------------------------------------------------------------------
    # DAMAGE & STATUS
    # -------------------------------------------------------------------------

    @staticmethod
    def update_damaged_pages(booklet_id, pages):
        """
        Replace the set of spoiled page offsets of a booklet.

        Args:
            booklet_id: Booklet primary key
            pages: Iterable of 0-based page offsets

        Raises:
            DamagedPageError: Offsets out of range, already bound to an
                application, or already passed by the allocation cursor
                and being restored
        """
        try:
            offsets = sorted({int(page) for page in pages})
        except (TypeError, ValueError):
            raise DamagedPageError("Damaged pages must be whole page offsets")

        with transaction.atomic(using=get_write_db(ConcessionBooklet)):
            booklet = _get_for_update(ConcessionBooklet, booklet_id, 'Booklet')

            out_of_range = [p for p in offsets if p < 0 or p >= booklet.total_pages]
            if out_of_range:
                raise DamagedPageError(
                    f"Page offsets {out_of_range} are outside booklet #{booklet.booklet_number} "
                    f"(0 - {booklet.total_pages - 1})"
                )

            bound = sorted(
                booklet.applications.filter(page_offset__in=offsets)
                .values_list('page_offset', flat=True)
            )
            if bound:
                raise DamagedPageError(f"Pages {bound} are already bound to applications")

            restored = set(booklet.get_damaged_pages()) - set(offsets)
            passed = sorted(p for p in restored if p < booklet.next_page_offset)
            if passed:
                raise DamagedPageError(
                    f"Pages {passed} were already skipped by allocation and cannot be restored"
                )

            booklet.damaged_pages = offsets
            BookletService._apply_status(booklet)
            booklet.save()

        logger.info(f"Booklet #{booklet.booklet_number} damaged pages set to {offsets}")
        return booklet

    @staticmethod
    def refresh_status(booklet):
        """
        Recompute and persist a booklet's derived status from a live count.

        Returns:
            bool: True if status or cached count changed
        """
        previous = (booklet.status, booklet.applications_count)
        BookletService._apply_status(booklet)
        changed = previous != (booklet.status, booklet.applications_count)

        booklet.save(update_fields=['status', 'applications_count'])
        return changed

    @staticmethod
    def recalculate_all_statuses(using=None):
        """
        Recompute the status of every booklet.

        Args:
            using: Database alias to recalculate on (default: the write database)

        Returns:
            dict: {'checked': int, 'updated': int}
        """
        checked = 0
        updated = 0
        db = using or get_write_db(ConcessionBooklet)
        booklets = ConcessionBooklet.objects.using(db)
        booklet_ids = list(booklets.values_list('pk', flat=True))

        for booklet_id in booklet_ids:
            with transaction.atomic(using=db):
                try:
                    booklet = booklets.select_for_update().get(pk=booklet_id)
                except ConcessionBooklet.DoesNotExist:
                    continue
                checked += 1
                if BookletService.refresh_status(booklet):
                    updated += 1
                    logger.info(f"Booklet #{booklet.booklet_number} status corrected to {booklet.status}")

        return {'checked': checked, 'updated': updated}

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    @staticmethod
    def list_allocatable_booklets():
        """
        Booklets an approver can pick from.

        Annotated with ``bound_count`` and ``last_used_at``; booklets
        already in use come first, then fuller booklets, then newer ones.
        """
        status_rank = Case(
            When(status='IN_USE', then=Value(0)),
            default=Value(1),
            output_field=IntegerField(),
        )
        return (
            ConcessionBooklet.objects
            .filter(status__in=ConcessionBooklet.ALLOCATABLE_STATUSES, is_damaged=False)
            .annotate(
                bound_count=Count('applications', filter=Q(applications__status='APPROVED')),
                last_used_at=Max('applications__reviewed_at'),
                status_rank=status_rank,
            )
            .order_by('status_rank', '-bound_count', '-booklet_number')
        )

    @staticmethod
    def search_booklets(query=None, status=None):
        """Booklets filtered by serial/number search and status, newest first."""
        booklets = ConcessionBooklet.objects.annotate(
            bound_count=Count('applications', filter=Q(applications__status='APPROVED'))
        )

        if status:
            booklets = booklets.filter(status=status)

        if query:
            term = normalize_serial(query)
            conditions = Q(serial_start_number__icontains=term) | Q(serial_end_number__icontains=term)
            if term.isdigit():
                conditions |= Q(booklet_number=int(term))
            booklets = booklets.filter(conditions)

        return booklets.order_by('-booklet_number')

    @staticmethod
    def get_booklet_pages(booklet):
        """
        Page register of a booklet: bound applications and damaged pages
        merged and ordered by page.

        Returns:
            list of dicts with page_offset, page_number, serial_number,
            is_damaged and application (None for damaged pages)
        """
        booklet = ConcessionBooklet.objects.get(pk=booklet.pk)
        pages = []

        applications = (
            booklet.applications
            .filter(page_offset__isnull=False)
            .select_related('student', 'previous_application__concession_booklet')
            .order_by('page_offset')
        )
        for application in applications:
            pages.append({
                'page_offset': application.page_offset,
                'page_number': application.page_offset + 1,
                'serial_number': booklet.serial_at(application.page_offset),
                'is_damaged': False,
                'application': application,
            })

        for offset in booklet.get_damaged_pages():
            pages.append({
                'page_offset': offset,
                'page_number': offset + 1,
                'serial_number': booklet.serial_at(offset),
                'is_damaged': True,
                'application': None,
            })

        pages.sort(key=lambda page: page['page_offset'])
        return pages


# =============================================================================
# ALLOCATION SERVICE
# =============================================================================

class AllocationService:
    """Binds approved applications to booklet pages"""

    @staticmethod
    def allocate(application_id, booklet_id, reviewed_by=None):
        """
        Approve a pending application onto the next free page of a booklet.

        Runs in one transaction: the booklet row is locked, the next offset
        is claimed with a conditional update on the cursor that was read,
        the application is bound and the booklet status recomputed. The
        review notification is sent after commit.

        Args:
            application_id: Pending application to approve
            booklet_id: Booklet to take the page from
            reviewed_by: Acting staff user (optional)

        Returns:
            Allocation(application, page_offset, certificate_number)

        Raises:
            NotFoundError: Booklet or application does not exist
            ApplicationStateError: Application is not pending
            ExhaustedError: Booklet is damaged or has no free page
            ConflictError: Another session claimed the page first or holds
                the database write lock
        """
        db = get_write_db(ConcessionBooklet)

        try:
            allocation = AllocationService._allocate(db, application_id, booklet_id, reviewed_by)
        except OperationalError as e:
            if 'lock' not in str(e).lower():
                raise
            logger.warning(f"Database locked while allocating on booklet {booklet_id}: {e}")
            raise ConflictError(
                "The booklet is being updated by another reviewer, please retry",
                field='booklet_id',
            )

        application = allocation.application
        logger.info(
            f"Approved application #{application.short_id} on booklet #{application.concession_booklet.booklet_number} "
            f"page {allocation.page_offset + 1} ({allocation.certificate_number})"
        )
        return allocation

    @staticmethod
    def _allocate(db, application_id, booklet_id, reviewed_by):
        with transaction.atomic(using=db):
            booklet = _get_for_update(ConcessionBooklet, booklet_id, 'Booklet')
            application = _get_for_update(ConcessionApplication, application_id, 'Application')

            if not application.is_pending():
                raise ApplicationStateError(
                    f"Application #{application.short_id} is already {application.get_status_display().lower()}"
                )

            if booklet.is_damaged or booklet.status == 'DAMAGED':
                raise ExhaustedError(f"Booklet #{booklet.booklet_number} is marked as damaged")

            read_cursor = booklet.next_page_offset
            page_offset = booklet.next_free_offset()
            if page_offset is None or booklet.status == 'EXHAUSTED':
                raise ExhaustedError(f"Booklet #{booklet.booklet_number} is full")

            claimed = ConcessionBooklet.objects.filter(
                pk=booklet.pk,
                next_page_offset=read_cursor,
            ).update(next_page_offset=page_offset + 1)

            if claimed == 0:
                logger.warning(
                    f"Stale cursor on booklet #{booklet.booklet_number} "
                    f"(read {read_cursor}), refusing allocation"
                )
                raise ConflictError(
                    f"Booklet #{booklet.booklet_number} was updated by another reviewer, please retry",
                    field='booklet_id',
                )
            booklet.next_page_offset = page_offset + 1

            application.concession_booklet = booklet
            application.page_offset = page_offset
            application.status = 'APPROVED'
            application.reviewed_at = timezone.now()
            application.reviewed_by_id = _user_id(reviewed_by)
            application.rejection_reason = ''

            try:
                with transaction.atomic(using=db):
                    application.save(update_fields=[
                        'concession_booklet', 'page_offset', 'status',
                        'reviewed_at', 'reviewed_by_id', 'rejection_reason',
                    ])
            except IntegrityError:
                raise ConflictError(
                    f"Page {page_offset + 1} of booklet #{booklet.booklet_number} is already taken",
                    field='booklet_id',
                )

            BookletService.refresh_status(booklet)

            certificate_number = CertificateService.certificate_for(application)
            notify_concession_reviewed(application, certificate_number)

        return Allocation(application, page_offset, certificate_number)


# =============================================================================
# APPLICATION SERVICE
# =============================================================================

class ApplicationService:
    """Application submission and rejection"""

    @staticmethod
    def submit_application(student, application_type='NEW', station='', concession_class='SECOND',
                           concession_period='MONTHLY'):
        """
        Submit (or resubmit) a concession application for a student.

        A student whose latest application is pending or rejected resubmits
        that application; otherwise a new one is created. Renewals link to
        the student's latest approved application.

        Returns:
            ConcessionApplication

        Raises:
            ApplicationStateError: Student is not approved
        """
        if not student.is_approved():
            raise ApplicationStateError("Student is not approved", field='student')

        valid_types = dict(ConcessionApplication.APPLICATION_TYPE_CHOICES)
        if application_type not in valid_types:
            raise ConcessionError(f"Unknown application type {application_type}", field='application_type')

        with transaction.atomic(using=get_write_db(ConcessionApplication)):
            latest = (
                ConcessionApplication.objects
                .select_for_update()
                .filter(student=student)
                .order_by('-created_at')
                .first()
            )

            if latest is not None and latest.status != 'APPROVED':
                latest.status = 'PENDING'
                latest.reviewed_at = None
                latest.reviewed_by_id = None
                latest.rejection_reason = ''
                latest.station = station
                latest.concession_class = concession_class
                latest.concession_period = concession_period
                latest.submission_count += 1
                latest.save()

                logger.info(
                    f"Resubmitted application #{latest.short_id} for {student} "
                    f"(submission {latest.submission_count})"
                )
                return latest

            previous = None
            if application_type == 'RENEWAL':
                previous = (
                    ConcessionApplication.objects
                    .filter(student=student, status='APPROVED')
                    .order_by('-reviewed_at', '-created_at')
                    .first()
                )

            application = ConcessionApplication.objects.create(
                short_id=generate_application_short_id(),
                student=student,
                application_type=application_type,
                status='PENDING',
                station=station,
                concession_class=concession_class,
                concession_period=concession_period,
                previous_application=previous,
                submission_count=1,
            )

        logger.info(f"Submitted {application_type.lower()} application #{application.short_id} for {student}")
        return application

    @staticmethod
    def reject_application(application_id, reason, reviewed_by=None):
        """
        Reject a pending application.

        Raises:
            ConcessionError: No rejection reason given
            NotFoundError, ApplicationStateError
        """
        reason = (reason or '').strip()
        if not reason:
            raise ConcessionError("A rejection reason is required", field='rejection_reason')

        with transaction.atomic(using=get_write_db(ConcessionApplication)):
            application = _get_for_update(ConcessionApplication, application_id, 'Application')

            if not application.is_pending():
                raise ApplicationStateError(
                    f"Application #{application.short_id} is already {application.get_status_display().lower()}"
                )

            application.status = 'REJECTED'
            application.reviewed_at = timezone.now()
            application.reviewed_by_id = _user_id(reviewed_by)
            application.rejection_reason = reason
            application.save()

            notify_concession_reviewed(application)

        logger.info(f"Rejected application #{application.short_id}: {reason}")
        return application


# =============================================================================
# CERTIFICATE SERVICE
# =============================================================================

class CertificateService:
    """Read-only certificate number derivation"""

    @staticmethod
    def certificate_for(application):
        """
        Certificate number printed on the application's booklet page.

        Example:
            Booklet A0807550 - A0807599, page offset 3 -> "A0807553"

        Raises:
            NotAllocatedError: Application has no booklet page
        """
        if not application.is_bound():
            raise NotAllocatedError(
                f"Application #{application.short_id} has not been allocated a booklet page"
            )
        booklet = application.concession_booklet
        return str(booklet.start_serial.at(application.page_offset))

    @staticmethod
    def current_pass_for(application):
        """
        The pass a student currently holds when applying.

        "New" for new applications, the previous application's certificate
        for renewals, "N/A" when there is no bound previous application.
        """
        if application.application_type == 'NEW':
            return 'New'

        previous = application.previous_application
        if previous is not None and previous.is_bound():
            return CertificateService.certificate_for(previous)
        return 'N/A'

    @staticmethod
    def serial_range_of(booklet):
        return booklet.serial_start_number, booklet.serial_end_number
