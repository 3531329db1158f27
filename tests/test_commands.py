"""
Tests for the booklet status management command
"""
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from concessions.models import ConcessionBooklet

pytestmark = pytest.mark.django_db


class TestRecalculateBookletStatuses:

    def test_corrects_drifted_status(self, booklet, approve):
        approve(booklet)
        ConcessionBooklet.objects.filter(pk=booklet.pk).update(status='AVAILABLE', applications_count=0)
        out = StringIO()

        call_command('recalculate_booklet_statuses', stdout=out)

        booklet.refresh_from_db()
        assert booklet.status == 'IN_USE'
        assert booklet.applications_count == 1
        assert 'Checked 1 booklet(s), corrected 1' in out.getvalue()

    def test_nothing_to_correct(self, booklet):
        out = StringIO()
        call_command('recalculate_booklet_statuses', stdout=out)
        assert 'corrected 0' in out.getvalue()

    def test_unknown_database(self):
        with pytest.raises(CommandError):
            call_command('recalculate_booklet_statuses', database='archive', stdout=StringIO())
