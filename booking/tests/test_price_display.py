# booking/tests/test_price_display.py

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from booking.models import ParkingSlot
from booking.services.price_display import PriceDisplayService


class PriceDisplayTests(SimpleTestCase):
    def test_format_price(self):
        self.assertEqual(PriceDisplayService.format_price(Decimal("25")), "$25.00")
        self.assertEqual(PriceDisplayService.format_price("-5"), "-$5.00")
        self.assertEqual(PriceDisplayService.format_price("n/a"), "$0.00")
        self.assertEqual(PriceDisplayService.format_price(3, currency_symbol="€"), "€3.00")

    def test_format_duration(self):
        self.assertEqual(PriceDisplayService.format_duration(45), "45 min")
        self.assertEqual(PriceDisplayService.format_duration(120), "2h")
        self.assertEqual(PriceDisplayService.format_duration(90), "1h 30min")

    def test_quote_display(self):
        slot = ParkingSlot(slot_number="A-01", slot_type=ParkingSlot.SlotType.ELECTRIC_VEHICLE, hourly_rate=Decimal("12.50"))
        start = datetime(2030, 1, 1, 10, 0, tzinfo=dt_timezone.utc)
        quote = PriceDisplayService.build_quote_display(slot, start, start + timedelta(minutes=135), Decimal("37.50"))
        self.assertEqual(quote["slot"], "A-01 — Electric vehicle • $12.50/h")
        self.assertEqual(quote["duration"], "2h 15min")
        self.assertEqual(quote["billable_hours"], 3)
        self.assertEqual(quote["total"], "$37.50")
