"""
mark_overdue.py
---------------
Flag ACTIVE bookings that ran past their end time without checking out.
Run it from cron every few minutes.

Usage:
    python manage.py mark_overdue
"""

from django.core.management.base import BaseCommand

from booking.services.booking_manager import BookingManager


class Command(BaseCommand):
    help = "Mark active bookings past their end time as OVERDUE."

    def handle(self, *args, **options):
        count = BookingManager().sweep_overdue()
        self.stdout.write(self.style.SUCCESS(f"Marked {count} booking(s) as overdue."))
