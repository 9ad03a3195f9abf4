"""
slot_utils.py
-------------
Helpers to convert a date string into a timezone-aware day window and to list
when a parking slot is free within it.
"""

from datetime import datetime, timedelta
from django.utils import timezone

from ..exceptions import BookingValidationError
from ..models import Booking, ParkingSlot
from .availability_engine import BLOCKING_STATUSES, check_availability


def _make_aware(dt_naive: datetime):
    """
    Convert a naive datetime to an aware one using Django's current timezone.
    This works with zoneinfo-based timezones (Django 4+).
    """
    if timezone.is_aware(dt_naive):
        return dt_naive
    return timezone.make_aware(dt_naive, timezone.get_current_timezone())


def date_to_range(date_str: str):
    """
    Convert 'YYYY-MM-DD' into a timezone-aware day window [start, end).
    """
    date_str = (date_str or "").strip()
    try:
        y, m, d = map(int, date_str.split("-"))
        day_start = _make_aware(datetime(y, m, d, 0, 0, 0))
    except ValueError:
        raise BookingValidationError(
            f"Invalid date '{date_str}'; expected YYYY-MM-DD",
            code="invalid_date",
            params={"date": date_str},
        )
    day_end = day_start + timedelta(days=1)
    return day_start, day_end


def free_windows(window_start, window_end, bookings, min_length: timedelta = timedelta(0)):
    """
    Gaps in [window_start, window_end) not covered by an occupying booking.

    Args:
        bookings: bookings of ONE slot, any status (non-occupying ones are skipped)
        min_length: drop gaps shorter than this (e.g. the 1h booking minimum)

    Returns:
        list of (start, end) tuples, sorted
    """
    busy = sorted(
        (max(b.start_time, window_start), min(b.end_time, window_end))
        for b in bookings
        if b.status in BLOCKING_STATUSES and b.start_time < window_end and b.end_time > window_start
    )

    windows = []
    cursor = window_start
    for start, end in busy:
        if start > cursor and start - cursor >= min_length:
            windows.append((cursor, start))
        cursor = max(cursor, end)
    if cursor < window_end and window_end - cursor >= min_length:
        windows.append((cursor, window_end))
    return windows


def slot_free_windows_for_day(slot, date_str: str, min_length: timedelta = timedelta(hours=1)):
    """
    Free windows of one slot on a calendar day, in the current timezone.
    """
    day_start, day_end = date_to_range(date_str)
    bookings = Booking.objects.filter(
        slot=slot,
        status__in=BLOCKING_STATUSES,
        start_time__lt=day_end,
        end_time__gt=day_start,
    )
    return free_windows(day_start, day_end, bookings, min_length=min_length)


def available_slots_for_time(start_time, end_time, slots=None):
    """
    Slots that are switched on and have no occupying booking overlapping
    [start_time, end_time).
    """
    if slots is None:
        slots = ParkingSlot.objects.filter(is_available=True)
    slots = [s for s in slots if s.is_available]

    by_slot = {s.pk: [] for s in slots}
    overlapping = Booking.objects.filter(
        slot_id__in=by_slot.keys(),
        status__in=BLOCKING_STATUSES,
        start_time__lt=end_time,
        end_time__gt=start_time,
    )
    for b in overlapping:
        by_slot[b.slot_id].append(b)

    return [s for s in slots if check_availability(s.pk, start_time, end_time, by_slot[s.pk])]
