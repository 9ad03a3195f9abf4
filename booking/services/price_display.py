# booking/services/price_display.py
#
# Purpose:
# - Consistent text for prices, durations, slots and booking quotes
# - Used by notification messages, admin columns and report output

from decimal import Decimal, InvalidOperation

from .availability_engine import billable_hours, hours_between


class PriceDisplayService:
    """
    Formatting helpers. No business decisions are made here; amounts come
    from the availability engine already rounded.
    """

    @staticmethod
    def format_price(price, currency_symbol="$"):
        """
        Format a price with currency symbol and exactly two decimals.

        Returns:
            str: e.g. "$25.00"; "-$5.00" for negative differences;
            "$0.00" for unparseable input
        """
        try:
            price_decimal = Decimal(str(price))
        except (ValueError, TypeError, InvalidOperation):
            return f"{currency_symbol}0.00"
        if price_decimal < 0:
            return f"-{currency_symbol}{-price_decimal:.2f}"
        return f"{currency_symbol}{price_decimal:.2f}"

    @staticmethod
    def format_duration(duration_minutes):
        """
        Format duration in a user-friendly way.

        Returns:
            str: e.g. "45 min", "2h" or "1h 30min"
        """
        duration_minutes = int(duration_minutes)
        if duration_minutes < 60:
            return f"{duration_minutes} min"

        hours = duration_minutes // 60
        minutes = duration_minutes % 60

        if minutes == 0:
            return f"{hours}h"

        return f"{hours}h {minutes}min"

    @staticmethod
    def format_slot_display(slot):
        """
        e.g. "A-01 — Electric vehicle • $12.50/h"
        """
        price_str = PriceDisplayService.format_price(slot.hourly_rate)
        return f"{slot.slot_number} — {slot.get_slot_type_display()} • {price_str}/h"

    @staticmethod
    def build_quote_display(slot, start_time, end_time, total_cost):
        """
        Breakdown shown before a booking is submitted.
        """
        hours = hours_between(start_time, end_time)
        minutes = int((end_time - start_time).total_seconds() // 60)
        return {
            "slot": PriceDisplayService.format_slot_display(slot),
            "duration": PriceDisplayService.format_duration(minutes),
            "billable_hours": int(billable_hours(hours, minimum=1)),
            "hourly_rate": PriceDisplayService.format_price(slot.hourly_rate),
            "total": PriceDisplayService.format_price(total_cost),
        }
