# reports/services.py
#
# Facility analytics over a time window:
# - bookings_per_day / cancellations_per_day: [{ "day": date, "count": N }, ...]
# - top_slots: [{ "slot_id": X, "slot_number": "...", "count": N }, ...]
# - revenue: sum of total_cost of bookings that were not cancelled
# - refunds: sum of refunds recorded on payments
# - occupancy_rate: booked slot-hours / available slot-hours, in percent
#
# Bookings are attributed to the window by start_time; occupancy clips each
# booking to the window.
#
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, Sum
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone

from booking.models import Booking, BookingStatus, Payment
from booking.services.availability_engine import hours_between, quantize_money

from .models import FacilityAnalytics

ZERO = Decimal("0.00")
MONEY = DecimalField(max_digits=12, decimal_places=2)

# Statuses that actually used (or still hold) the slot.
OCCUPYING_FOR_REPORTS = (
    BookingStatus.CONFIRMED,
    BookingStatus.ACTIVE,
    BookingStatus.COMPLETED,
    BookingStatus.OVERDUE,
)


def _occupancy_rate(facility, start, end) -> Decimal:
    slot_count = facility.slots.count()
    window_hours = hours_between(start, end)
    if slot_count == 0 or window_hours <= 0:
        return ZERO

    booked = Decimal(0)
    overlapping = Booking.objects.filter(
        slot__facility=facility,
        status__in=OCCUPYING_FOR_REPORTS,
        start_time__lt=end,
        end_time__gt=start,
    ).only("start_time", "end_time")
    for b in overlapping:
        booked += hours_between(max(b.start_time, start), min(b.end_time, end))

    return quantize_money(booked / (window_hours * slot_count) * 100)


def facility_summary(facility, start, end) -> dict:
    """
    Summary of one facility's bookings starting in [start, end).
    """
    bookings = Booking.objects.filter(slot__facility=facility, start_time__gte=start, start_time__lt=end)
    tz = timezone.get_current_timezone()

    bookings_per_day = (
        bookings.annotate(day=TruncDate("start_time", tzinfo=tz))
        .values("day")
        .annotate(count=Count("id"))
        .order_by("day")
    )
    cancellations_per_day = (
        bookings.filter(status=BookingStatus.CANCELLED)
        .annotate(day=TruncDate("start_time", tzinfo=tz))
        .values("day")
        .annotate(count=Count("id"))
        .order_by("day")
    )
    top_slots = (
        bookings.values("slot_id", "slot__slot_number")
        .annotate(count=Count("id"))
        .order_by("-count", "slot__slot_number")[:5]
    )

    revenue = bookings.exclude(status=BookingStatus.CANCELLED).aggregate(
        total=Coalesce(Sum("total_cost"), ZERO, output_field=MONEY)
    )["total"]
    refunds = Payment.objects.filter(booking__in=bookings).aggregate(
        total=Coalesce(Sum("refund_amount"), ZERO, output_field=MONEY)
    )["total"]

    return {
        "facility_id": facility.id,
        "facility_name": facility.name,
        "start": start,
        "end": end,
        "total_bookings": bookings.count(),
        "cancellations": bookings.filter(status=BookingStatus.CANCELLED).count(),
        "revenue": quantize_money(revenue),
        "refunds": quantize_money(refunds),
        "occupancy_rate": _occupancy_rate(facility, start, end),
        "bookings_per_day": list(bookings_per_day),
        "cancellations_per_day": list(cancellations_per_day),
        "top_slots": [
            {"slot_id": row["slot_id"], "slot_number": row["slot__slot_number"], "count": row["count"]}
            for row in top_slots
        ],
    }


def day_bounds(day):
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    return start, start + timedelta(days=1)


def snapshot_daily(facility, day) -> FacilityAnalytics:
    """
    Store (or refresh) the FacilityAnalytics row for one calendar day.
    """
    start, end = day_bounds(day)
    summary = facility_summary(facility, start, end)
    row, _ = FacilityAnalytics.objects.update_or_create(
        facility=facility,
        date=day,
        defaults={
            "total_bookings": summary["total_bookings"],
            "cancellations": summary["cancellations"],
            "revenue": summary["revenue"],
            "refunds": summary["refunds"],
            "occupancy_rate": summary["occupancy_rate"],
        },
    )
    return row
