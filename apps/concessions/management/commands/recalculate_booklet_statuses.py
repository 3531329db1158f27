# management/commands/recalculate_booklet_statuses.py

"""
Recompute the derived status of every concession booklet from a live
count of bound applications and damaged pages.

USAGE EXAMPLES:
===============

# 1. Recalculate on the default database
python manage.py recalculate_booklet_statuses

# 2. Recalculate on another configured database
python manage.py recalculate_booklet_statuses --database archive
"""

from django.core.management.base import BaseCommand, CommandError
from django.conf import settings
import logging

from utils.context import RequestContext
from concessions.services import BookletService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Recalculate the status of all concession booklets'

    def add_arguments(self, parser):
        parser.add_argument(
            '--database', type=str, default='default',
            help='Database alias to recalculate booklets on'
        )

    def handle(self, *args, **options):
        database = options['database']
        if database not in settings.DATABASES:
            raise CommandError(f"Database '{database}' not found in settings")

        self.stdout.write(self.style.MIGRATE_HEADING(f"Recalculating booklet statuses on: {database}"))

        with RequestContext(request_path='manage.py recalculate_booklet_statuses'):
            summary = BookletService.recalculate_all_statuses(using=database)

        logger.info(f"Booklet status recalculation on {database}: {summary}")
        self.stdout.write(self.style.SUCCESS(
            f"Checked {summary['checked']} booklet(s), corrected {summary['updated']}"
        ))
