import json
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from booking.models import Booking, BookingStatus, Facility, ParkingSlot, Payment
from reports.models import FacilityAnalytics
from reports.services import facility_summary, snapshot_daily

DAY = datetime(2030, 1, 1, tzinfo=dt_timezone.utc)


def h(hours):
    return DAY + timedelta(hours=hours)


class ReportsTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="driver")
        self.facility = Facility.objects.create(name="Central", address="1 Main St", manager=self.user)
        self.a = ParkingSlot.objects.create(facility=self.facility, slot_number="A-01", hourly_rate=Decimal("10"))
        self.b = ParkingSlot.objects.create(facility=self.facility, slot_number="A-02", hourly_rate=Decimal("10"))

        self._booking(self.a, h(10), h(12), BookingStatus.CONFIRMED, "20.00")
        cancelled = self._booking(self.a, h(13), h(14), BookingStatus.CANCELLED, "10.00")
        self._booking(self.b, h(22), h(26), BookingStatus.COMPLETED, "40.00")
        Payment.objects.create(
            booking=cancelled,
            amount=Decimal("10.00"),
            method=Payment.Method.CASH,
            status=Payment.Status.REFUNDED,
            refund_amount=Decimal("10.00"),
        )

    def _booking(self, slot, start, end, status, cost):
        return Booking.objects.create(
            user=self.user, slot=slot, vehicle_number="ABC1",
            start_time=start, end_time=end, status=status, total_cost=Decimal(cost),
        )


class FacilitySummaryTests(ReportsTestCase):
    def test_summary_figures(self):
        with timezone.override("UTC"):
            summary = facility_summary(self.facility, h(0), h(24))

        self.assertEqual(summary["total_bookings"], 3)
        self.assertEqual(summary["cancellations"], 1)
        self.assertEqual(summary["revenue"], Decimal("60.00"))
        self.assertEqual(summary["refunds"], Decimal("10.00"))
        # 2h on A-01 + 2h of A-02's overnight booking, over 2 slots * 24h
        self.assertEqual(summary["occupancy_rate"], Decimal("8.33"))
        self.assertEqual(summary["bookings_per_day"], [{"day": date(2030, 1, 1), "count": 3}])
        self.assertEqual(summary["cancellations_per_day"], [{"day": date(2030, 1, 1), "count": 1}])
        self.assertEqual(
            summary["top_slots"],
            [
                {"slot_id": self.a.id, "slot_number": "A-01", "count": 2},
                {"slot_id": self.b.id, "slot_number": "A-02", "count": 1},
            ],
        )

    def test_empty_facility(self):
        empty = Facility.objects.create(name="Empty", address="2 Main St", manager=self.user)
        summary = facility_summary(empty, h(0), h(24))
        self.assertEqual(summary["total_bookings"], 0)
        self.assertEqual(summary["revenue"], Decimal("0.00"))
        self.assertEqual(summary["occupancy_rate"], Decimal("0.00"))

    def test_snapshot_is_refreshed_not_duplicated(self):
        with timezone.override("UTC"):
            row = snapshot_daily(self.facility, date(2030, 1, 1))
            self.assertEqual(row.total_bookings, 3)
            self.assertEqual(row.revenue, Decimal("60.00"))

            self._booking(self.b, h(8), h(9), BookingStatus.CONFIRMED, "10.00")
            row = snapshot_daily(self.facility, date(2030, 1, 1))

        self.assertEqual(FacilityAnalytics.objects.count(), 1)
        self.assertEqual(row.total_bookings, 4)


class ReportCommandTests(ReportsTestCase):
    def test_facility_report_prints_json(self):
        out = StringIO()
        call_command("facility_report", "--facility", str(self.facility.id), "--days", "7", stdout=out)
        data = json.loads(out.getvalue())
        self.assertEqual(data["facility_name"], "Central")
        self.assertIn("occupancy_rate", data)

    def test_facility_report_unknown_facility(self):
        with self.assertRaises(CommandError):
            call_command("facility_report", "--facility", "999")

    def test_snapshot_analytics_command(self):
        out = StringIO()
        with timezone.override("UTC"):
            call_command("snapshot_analytics", "--date", "2030-01-01", stdout=out)
        self.assertIn("Stored analytics for 1", out.getvalue())
        self.assertEqual(FacilityAnalytics.objects.get(facility=self.facility).total_bookings, 3)

    def test_snapshot_analytics_bad_date(self):
        with self.assertRaises(CommandError):
            call_command("snapshot_analytics", "--date", "01/01/2030")
