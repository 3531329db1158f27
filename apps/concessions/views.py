# concessions/views.py

from django.contrib.admin.views.decorators import staff_member_required
from django.http import HttpResponse, Http404
from django.utils import timezone
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from .models import ConcessionBooklet
from .services import BookletService, CertificateService

logger = logging.getLogger(__name__)

REGISTER_HEADERS = [
    'Page', 'Serial Number', 'Status', 'Application No.', 'Student',
    'Gender', 'Date of Birth', 'Type', 'Current Pass', 'Approved On'
]


# =============================================================================
# EXPORT FUNCTIONS
# =============================================================================

def build_booklet_register(booklet):
    """Workbook listing every used or damaged page of a booklet"""
    wb = Workbook()
    ws = wb.active
    ws.title = f"Booklet {booklet.booklet_number}"

    ws.append(REGISTER_HEADERS)

    for cell in ws[1]:
        cell.fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
        cell.font = Font(bold=True, color='FFFFFF')

    damaged_fill = PatternFill(start_color='D9D9D9', end_color='D9D9D9', fill_type='solid')

    for page in BookletService.get_booklet_pages(booklet):
        application = page['application']

        if application is None:
            ws.append([page['page_number'], page['serial_number'], 'Damaged'])
            for cell in ws[ws.max_row]:
                cell.fill = damaged_fill
            continue

        student = application.student
        ws.append([
            page['page_number'],
            page['serial_number'],
            application.get_status_display(),
            application.short_id,
            student.get_full_name(),
            student.get_gender_display(),
            student.date_of_birth.strftime('%Y-%m-%d') if student.date_of_birth else '',
            application.get_application_type_display(),
            CertificateService.current_pass_for(application),
            timezone.localtime(application.reviewed_at).strftime('%Y-%m-%d') if application.reviewed_at else '',
        ])

    return wb


@staff_member_required
def export_booklet_register_excel(request, booklet_id):
    """Export a booklet's page register to Excel"""
    try:
        booklet = ConcessionBooklet.objects.get(pk=booklet_id)
    except ConcessionBooklet.DoesNotExist:
        raise Http404("Booklet not found")

    wb = build_booklet_register(booklet)

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response['Content-Disposition'] = (
        f'attachment; filename="booklet_{booklet.booklet_number}_'
        f'{booklet.serial_start_number}_{timezone.now().strftime("%Y%m%d")}.xlsx"'
    )

    wb.save(response)
    logger.info(f"Exported register of booklet #{booklet.booklet_number}")
    return response
