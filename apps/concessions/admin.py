# concessions/admin.py

from django.contrib import admin, messages
from django.db import transaction

from .exceptions import ConcessionError
from .models import ConcessionBooklet, ConcessionApplication, BookletSerialSeries
from .services import BookletService, CertificateService
from utils.utils import get_write_db


@admin.register(ConcessionBooklet)
class ConcessionBookletAdmin(admin.ModelAdmin):
    """
    Booklets are registered and re-ranged through BookletService so the
    overlap checks always run; the admin edits print settings only.
    """

    list_display = [
        'booklet_number', 'serial_start_number', 'serial_end_number',
        'status', 'applications_count', 'is_damaged', 'overlay_configured'
    ]
    list_filter = ['status', 'is_damaged', 'overlay_configured']
    search_fields = ['serial_start_number', 'serial_end_number', 'booklet_number']
    ordering = ['-booklet_number']
    readonly_fields = [
        'id', 'booklet_number', 'serial_start_number', 'serial_end_number',
        'total_pages', 'status', 'is_damaged', 'applications_count',
        'next_page_offset', 'damaged_pages', 'created_at', 'updated_at'
    ]
    fieldsets = (
        ('Serial Range', {
            'fields': ('booklet_number', 'serial_start_number', 'serial_end_number', 'total_pages')
        }),
        ('Usage', {
            'fields': ('status', 'is_damaged', 'applications_count', 'next_page_offset', 'damaged_pages')
        }),
        ('Print Overlay', {
            'fields': ('overlay_template_ref', 'overlay_configured', 'anchor_x', 'anchor_y')
        }),
        ('Audit', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    actions = ['recalculate_status']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description='Recalculate status of selected booklets')
    def recalculate_status(self, request, queryset):
        updated = 0
        db = get_write_db(ConcessionBooklet)
        for booklet in queryset:
            with transaction.atomic(using=db):
                locked = ConcessionBooklet.objects.using(db).select_for_update().get(pk=booklet.pk)
                if BookletService.refresh_status(locked):
                    updated += 1
        self.message_user(request, f"{updated} booklet(s) had their status corrected", messages.SUCCESS)


@admin.register(ConcessionApplication)
class ConcessionApplicationAdmin(admin.ModelAdmin):
    list_display = [
        'short_id', 'student', 'application_type', 'status',
        'concession_booklet', 'certificate_number', 'reviewed_at'
    ]
    list_filter = ['status', 'application_type', 'concession_class', 'concession_period']
    search_fields = ['short_id', 'student__first_name', 'student__last_name', 'student__enrollment_number']
    list_select_related = ['student', 'concession_booklet']
    raw_id_fields = ['student', 'previous_application']
    readonly_fields = [
        'id', 'short_id', 'status', 'concession_booklet', 'page_offset',
        'submission_count', 'reviewed_at', 'reviewed_by_id', 'rejection_reason',
        'certificate_number', 'current_pass', 'created_at', 'updated_at'
    ]

    def has_add_permission(self, request):
        return False

    @admin.display(description='Certificate No.')
    def certificate_number(self, obj):
        try:
            return CertificateService.certificate_for(obj)
        except ConcessionError:
            return '-'

    @admin.display(description='Current Pass')
    def current_pass(self, obj):
        return CertificateService.current_pass_for(obj)


@admin.register(BookletSerialSeries)
class BookletSerialSeriesAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'created_at']
    readonly_fields = ['prefix', 'created_at']

    def has_add_permission(self, request):
        return False
