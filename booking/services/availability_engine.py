"""
availability_engine.py
----------------------
Pure decision/computation layer for slot bookings:
1) admission: does a proposed [start, end) overlap an occupying booking?
2) pricing: booking cost and extension cost in billable hours,
3) refunds: time-based refund tier at cancellation.

Rules:
- Intervals are half-open. Two bookings overlap iff
      existing_start < new_end AND new_start < existing_end
  so back-to-back bookings (one ends exactly when the next starts) are fine.
- Only CONFIRMED and ACTIVE bookings occupy a slot.
- Billable hours = ceil(duration in hours), minimum 1 for new bookings.
- Money is Decimal, rounded half-up to cents at every computed boundary.

Nothing here reads the clock, touches the database or logs. Callers pass
"now" explicitly and own persistence (see booking_store.py).
"""

from collections import namedtuple
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_HALF_UP

from ..exceptions import BookingValidationError
from ..models import BookingStatus

BLOCKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.ACTIVE)

MIN_BOOKING_DURATION = timedelta(hours=1)
MAX_BOOKING_DURATION = timedelta(hours=24)

FULL_REFUND_AFTER_HOURS = Decimal("2")
HALF_REFUND_FROM_HOURS = Decimal("1")

CENT = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)

RefundQuote = namedtuple("RefundQuote", ["amount", "percentage"])


# -------------------- helpers --------------------
def quantize_money(value) -> Decimal:
    """Round a currency amount half-up to 2 decimal places."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def hours_between(start, end) -> Decimal:
    """
    Exact signed number of hours from 'start' to 'end' (negative if end < start).
    Built from the timedelta parts to avoid float rounding.
    """
    delta = end - start
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return seconds / SECONDS_PER_HOUR


def billable_hours(hours: Decimal, minimum: int = 0) -> Decimal:
    return max(Decimal(minimum), hours.to_integral_value(rounding=ROUND_CEILING))


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    return a_start < b_end and b_start < a_end


def _require_interval(start_time, end_time):
    if start_time is None or end_time is None:
        raise BookingValidationError(
            "Start time and end time are required",
            code="times_required",
            params={"start_time": start_time, "end_time": end_time},
        )
    if end_time <= start_time:
        raise BookingValidationError(
            "End time must be after start time",
            code="end_before_start",
            params={"start_time": start_time, "end_time": end_time},
        )


def _require_rate(hourly_rate) -> Decimal:
    try:
        rate = Decimal(str(hourly_rate))
    except (ValueError, TypeError, InvalidOperation):
        raise BookingValidationError(
            "Hourly rate must be a number",
            code="invalid_rate",
            params={"hourly_rate": hourly_rate},
        )
    if rate < 0:
        raise BookingValidationError(
            "Hourly rate cannot be negative",
            code="negative_rate",
            params={"hourly_rate": rate},
        )
    return rate


# -------------------- admission --------------------
def check_availability(slot_id, start_time, end_time, existing_bookings, exclude_booking_id=None) -> bool:
    """
    True iff no occupying booking of 'slot_id' overlaps [start_time, end_time).

    Args:
        slot_id: slot being booked
        start_time, end_time: aware datetimes, start < end
        existing_bookings: bookings of the slot (objects with start_time,
            end_time, status and pk). Non-occupying statuses and bookings of
            other slots are ignored.
        exclude_booking_id: booking to leave out (used when extending it)

    Raises:
        BookingValidationError: missing, zero-length or inverted interval.
    """
    _require_interval(start_time, end_time)

    for b in existing_bookings:
        if b.status not in BLOCKING_STATUSES:
            continue
        if getattr(b, "slot_id", slot_id) != slot_id:
            continue
        if exclude_booking_id is not None and b.pk == exclude_booking_id:
            continue
        if overlaps(b.start_time, b.end_time, start_time, end_time):
            return False
    return True


def find_conflicts(slot_id, start_time, end_time, existing_bookings, exclude_booking_id=None):
    """Same rule as check_availability, but returns the blocking bookings."""
    return [
        b for b in existing_bookings
        if not check_availability(slot_id, start_time, end_time, [b], exclude_booking_id)
    ]


def validate_booking_window(start_time, end_time, now):
    """
    Creation-time policy: start not in the past, duration within [1h, 24h].
    Not applied to extensions.
    """
    _require_interval(start_time, end_time)

    if start_time < now:
        raise BookingValidationError(
            "Start time cannot be in the past",
            code="start_in_past",
            params={"start_time": start_time, "now": now},
        )

    duration = end_time - start_time
    if duration < MIN_BOOKING_DURATION:
        raise BookingValidationError(
            "Minimum booking duration is 1 hour",
            code="duration_too_short",
            params={"duration_hours": hours_between(start_time, end_time)},
        )
    if duration > MAX_BOOKING_DURATION:
        raise BookingValidationError(
            "Maximum booking duration is 24 hours",
            code="duration_too_long",
            params={"duration_hours": hours_between(start_time, end_time)},
        )


# -------------------- pricing --------------------
def compute_cost(start_time, end_time, hourly_rate) -> Decimal:
    """
    Charge for a new booking: max(1, ceil(hours)) * hourly_rate.
    e.g. 10:00-10:30 at 10.00 -> 10.00; 10:00-12:15 at 10.00 -> 30.00
    """
    rate = _require_rate(hourly_rate)
    _require_interval(start_time, end_time)
    hours = billable_hours(hours_between(start_time, end_time), minimum=1)
    return quantize_money(hours * rate)


def compute_extension_cost(old_end_time, new_end_time, hourly_rate) -> Decimal:
    """
    Extra charge for moving a booking's end from old_end_time to new_end_time.
    The caller adds it to total_cost and must re-run check_availability on
    the extended interval (excluding the booking itself).
    """
    rate = _require_rate(hourly_rate)
    if old_end_time is None or new_end_time is None:
        raise BookingValidationError("New end time is required", code="times_required")
    if new_end_time <= old_end_time:
        raise BookingValidationError(
            "New end time must be after the current end time",
            code="extension_not_later",
            params={"old_end_time": old_end_time, "new_end_time": new_end_time},
        )
    hours = billable_hours(hours_between(old_end_time, new_end_time), minimum=0)
    return quantize_money(hours * rate)


# -------------------- refunds --------------------
def refund_percentage(hours_until_start: Decimal) -> int:
    if hours_until_start > FULL_REFUND_AFTER_HOURS:
        return 100
    if hours_until_start >= HALF_REFUND_FROM_HOURS:
        return 50
    return 0


def compute_refund(total_cost, start_time, now) -> RefundQuote:
    """
    Refund owed when cancelling at 'now':
        more than 2h before start -> 100%
        1h..2h (inclusive)        -> 50%
        less than 1h / started    -> 0%
    """
    percentage = refund_percentage(hours_between(now, start_time))
    amount = quantize_money(Decimal(str(total_cost)) * percentage / 100)
    return RefundQuote(amount=amount, percentage=percentage)
