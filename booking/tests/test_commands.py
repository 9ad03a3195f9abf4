# booking/tests/test_commands.py

from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import User
from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from booking.models import Booking, BookingStatus, Facility, ParkingSlot
from notifications.models import Notification


class CommandTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="driver", email="driver@example.com")
        facility = Facility.objects.create(name="Central", address="1 Main St", manager=self.user)
        self.slot = ParkingSlot.objects.create(facility=facility, slot_number="A-01", hourly_rate=Decimal("10"))

    def _booking(self, start, end, status=BookingStatus.CONFIRMED):
        return Booking.objects.create(
            user=self.user, slot=self.slot, vehicle_number="ABC1",
            start_time=start, end_time=end, status=status, total_cost=Decimal("10.00"),
        )

    def test_send_reminders_once_per_booking(self):
        now = timezone.now()
        soon = self._booking(now + timedelta(minutes=20), now + timedelta(hours=2))
        self._booking(now + timedelta(hours=3), now + timedelta(hours=4))
        mail.outbox.clear()

        out = StringIO()
        call_command("send_reminders", stdout=out)
        self.assertIn("Sent 1 reminder(s)", out.getvalue())
        self.assertEqual(len(mail.outbox), 1)
        reminder = Notification.objects.get(type=Notification.Type.REMINDER)
        self.assertEqual(reminder.related_entity_id, str(soon.pk))

        out = StringIO()
        call_command("send_reminders", stdout=out)
        self.assertIn("Sent 0 reminder(s)", out.getvalue())

    def test_reminder_for_another_booking_does_not_suppress(self):
        now = timezone.now()
        Notification.objects.create(
            user=self.user,
            message="old reminder",
            type=Notification.Type.REMINDER,
            related_entity_type="Booking",
            related_entity_id="999999",
        )
        self._booking(now + timedelta(minutes=10), now + timedelta(hours=2))

        out = StringIO()
        call_command("send_reminders", stdout=out)
        self.assertIn("Sent 1 reminder(s)", out.getvalue())

    def test_send_reminders_custom_lead(self):
        now = timezone.now()
        self._booking(now + timedelta(minutes=50), now + timedelta(hours=2))
        out = StringIO()
        call_command("send_reminders", "--minutes", "60", stdout=out)
        self.assertIn("Sent 1 reminder(s)", out.getvalue())

    def test_mark_overdue(self):
        now = timezone.now()
        late = self._booking(now - timedelta(hours=3), now - timedelta(hours=1), status=BookingStatus.ACTIVE)
        out = StringIO()
        call_command("mark_overdue", stdout=out)
        self.assertIn("Marked 1 booking(s)", out.getvalue())
        late.refresh_from_db()
        self.assertEqual(late.status, BookingStatus.OVERDUE)

    def test_seed_facilities_is_idempotent(self):
        call_command("seed_facilities", stdout=StringIO())
        count = ParkingSlot.objects.count()
        out = StringIO()
        call_command("seed_facilities", stdout=out)
        self.assertIn("Created=0, Updated=0", out.getvalue())
        self.assertEqual(ParkingSlot.objects.count(), count)

        facility = Facility.objects.get(name="Downtown Parking")
        self.assertEqual(facility.total_slots, facility.slots.count())
        self.assertTrue(facility.slots.filter(slot_type=ParkingSlot.SlotType.ELECTRIC_VEHICLE).exists())
        self.assertTrue(User.objects.filter(username="facility_manager", is_staff=True).exists())
