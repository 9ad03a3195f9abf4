# booking/tests/test_rate_history.py

from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase

from audit.models import AuditLog
from booking.exceptions import BookingValidationError
from booking.models import Facility, ParkingSlot, RateHistory
from booking.services.price_management import RateManagementService


class RateHistoryTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", is_staff=True)
        facility = Facility.objects.create(name="Central", address="1 Main St", manager=self.admin)
        self.slot = ParkingSlot.objects.create(
            facility=facility,
            slot_number="B-01",
            slot_type=ParkingSlot.SlotType.ELECTRIC_VEHICLE,
            hourly_rate=Decimal("12.00"),
        )

    def test_rate_change_creates_history(self):
        # Sanity: no history yet
        self.assertEqual(RateHistory.objects.count(), 0)

        result = RateManagementService.update_slot_rate(self.slot, "12.50", admin_user=self.admin)
        self.assertTrue(result["changed"])
        self.assertEqual(result["changed_by"], "admin")

        self.slot.refresh_from_db()
        self.assertEqual(self.slot.hourly_rate, Decimal("12.50"))

        self.assertEqual(RateHistory.objects.count(), 1)
        rh = RateHistory.objects.first()
        self.assertEqual(rh.slot_id, self.slot.id)
        self.assertEqual(rh.old_rate, Decimal("12.00"))
        self.assertEqual(rh.new_rate, Decimal("12.50"))
        self.assertEqual(rh.changed_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(action="SLOT_RATE_CHANGED").exists())

    def test_no_history_when_rate_unchanged(self):
        result = RateManagementService.update_slot_rate(self.slot, "12.00")
        self.assertFalse(result["changed"])
        self.assertEqual(result["changed_by"], "system")
        self.assertEqual(RateHistory.objects.count(), 0)

    def test_invalid_rates_are_rejected(self):
        for value, code in (("abc", "invalid_rate"), ("-1", "negative_rate"), ("10000", "rate_too_high")):
            with self.assertRaises(BookingValidationError) as cm:
                RateManagementService.update_slot_rate(self.slot, value)
            self.assertEqual(cm.exception.code, code)
        self.assertEqual(RateHistory.objects.count(), 0)

    def test_free_slot_is_allowed(self):
        self.assertEqual(RateManagementService.validate_rate(0), Decimal("0.00"))

    def test_change_summary(self):
        summary = RateManagementService.get_rate_change_summary(self.slot, "15")
        self.assertEqual(summary["current_rate"], "$12.00")
        self.assertEqual(summary["new_rate"], "$15.00")
        self.assertEqual(summary["difference"], "$3.00")
        self.assertEqual(summary["percent_change"], 25.0)
