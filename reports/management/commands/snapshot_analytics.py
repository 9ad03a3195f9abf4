"""
snapshot_analytics.py
---------------------
Store one FacilityAnalytics row per facility for a calendar day.
Re-running for the same day refreshes the row instead of duplicating it.

Usage:
    python manage.py snapshot_analytics                 # yesterday
    python manage.py snapshot_analytics --date 2025-03-01
"""

import logging
from datetime import date, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from booking.models import Facility
from reports.services import snapshot_daily

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Compute daily analytics for every facility."

    def add_arguments(self, parser):
        parser.add_argument("--date", help="Day to snapshot as YYYY-MM-DD (default: yesterday).")

    def handle(self, *args, **options):
        if options.get("date"):
            try:
                day = date.fromisoformat(options["date"])
            except ValueError:
                raise CommandError("--date must be YYYY-MM-DD.")
        else:
            day = timezone.localdate() - timedelta(days=1)

        count = 0
        for facility in Facility.objects.all():
            row = snapshot_daily(facility, day)
            logger.info("analytics snapshot facility=%s day=%s bookings=%s", facility.pk, day, row.total_bookings)
            count += 1

        self.stdout.write(self.style.SUCCESS(f"Stored analytics for {count} facility(ies) on {day}."))
