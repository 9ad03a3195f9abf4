"""
facility_report.py
------------------
Print a JSON summary of one facility's bookings over the last N days.

Usage:
    python manage.py facility_report --facility 1
    python manage.py facility_report --facility 1 --days 7
"""

import json
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from booking.models import Facility
from reports.services import facility_summary


class Command(BaseCommand):
    help = "Print booking, revenue and occupancy figures for a facility as JSON."

    def add_arguments(self, parser):
        parser.add_argument("--facility", type=int, required=True, help="Facility id")
        parser.add_argument("--days", type=int, default=30, help="Look-back window in days (default 30).")

    def handle(self, *args, **options):
        days = options["days"]
        if days <= 0:
            raise CommandError("--days must be positive.")
        try:
            facility = Facility.objects.get(pk=options["facility"])
        except Facility.DoesNotExist:
            raise CommandError(f"Facility {options['facility']} does not exist.")

        end = timezone.now()
        start = end - timedelta(days=days)
        summary = facility_summary(facility, start, end)
        self.stdout.write(json.dumps(summary, cls=DjangoJSONEncoder, indent=2))
