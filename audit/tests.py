from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase

from audit.models import AuditLog
from audit.services import record_action


class RecordActionTests(TestCase):
    def test_changes_are_json_safe(self):
        when = datetime(2030, 1, 1, 10, 0, tzinfo=dt_timezone.utc)
        entry = record_action(
            "BOOKING_EXTENDED",
            "Booking#1",
            changes={"end_time": [when, when], "total_cost": [Decimal("10.00"), Decimal("20.00")]},
        )
        entry.refresh_from_db()
        self.assertEqual(entry.username, "system")
        self.assertEqual(entry.changes["total_cost"], ["10.00", "20.00"])
        self.assertEqual(entry.changes["end_time"][0], "2030-01-01T10:00:00Z")

    def test_user_and_severity(self):
        user = User.objects.create_user(username="boss")
        entry = record_action("OVERDUE_RESOLVED", "Booking#2", user=user, severity=AuditLog.Severity.HIGH)
        self.assertEqual(entry.username, "boss")
        self.assertEqual(str(entry), "[HIGH] boss OVERDUE_RESOLVED Booking#2")
