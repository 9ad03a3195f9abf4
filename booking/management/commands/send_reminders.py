"""
send_reminders.py
-----------------
Django management command to remind users shortly before their booking starts.

Usage:
    python manage.py send_reminders
    python manage.py send_reminders --minutes 60

Behavior:
- Finds CONFIRMED bookings starting within the next N minutes
  (default: the REMINDER_LEAD_MINUTES system setting).
- Skips bookings that already have a REMINDER notification, so the command
  can run every few minutes from cron.
- Sends through NotificationService (console email backend in development).
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from booking.models import Booking, BookingStatus
from booking.services.notification_service import NotificationService
from configmgr.settings_store import REMINDER_LEAD_MINUTES, get_int
from notifications.models import Notification


class Command(BaseCommand):
    help = "Send reminders for confirmed bookings that start soon."

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes",
            type=int,
            help="Lead time in minutes (default: REMINDER_LEAD_MINUTES setting).",
        )

    def handle(self, *args, **options):
        minutes = options.get("minutes")
        if minutes is None:
            minutes = get_int(REMINDER_LEAD_MINUTES)
        if minutes <= 0:
            raise CommandError("--minutes must be positive.")

        now = timezone.now()
        qs = Booking.objects.filter(
            status=BookingStatus.CONFIRMED,
            start_time__gt=now,
            start_time__lte=now + timedelta(minutes=minutes),
        ).select_related("user", "slot")

        bookings = list(qs)
        already_reminded = set(
            Notification.objects.filter(
                type=Notification.Type.REMINDER,
                related_entity_type="Booking",
                related_entity_id__in=[str(b.pk) for b in bookings],
            ).values_list("related_entity_id", flat=True)
        )

        notifier = NotificationService()
        count = 0
        for booking in bookings:
            if str(booking.pk) in already_reminded:
                continue
            lead = max(int((booking.start_time - now).total_seconds() // 60), 0)
            notifier.send_reminder(booking, minutes_before=lead)
            count += 1

        self.stdout.write(self.style.SUCCESS(f"Sent {count} reminder(s) for the next {minutes} minutes."))
