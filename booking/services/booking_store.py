"""
booking_store.py
----------------
Data-access interface used by BookingManager, plus the Django ORM version.

The store owns the authoritative list of bookings per slot. Its write
operations are atomic with respect to the no-double-booking rule:

- insert_booking_atomic: locks the slot row (SELECT ... FOR UPDATE inside
  transaction.atomic), re-reads the occupying bookings and re-runs
  check_availability before inserting. Two concurrent requests for the same
  slot serialize on the lock, so the loser sees the winner's booking.
- update_booking_status / update_booking_extension: lock the booking row
  and compare what the caller saw (status, end time) with what is stored.
  A mismatch means someone else changed it first -> SlotConflictError,
  nothing written.
- lock_booking: callers that price from the stored row (check-out,
  cancellation) read it through this inside their own transaction.
"""

from abc import ABC, abstractmethod

from django.db import transaction

from ..exceptions import BookingNotFoundError, SlotConflictError
from ..models import Booking, BookingHistory, BookingStatus, ParkingSlot
from .availability_engine import BLOCKING_STATUSES, check_availability, find_conflicts


class BookingStore(ABC):
    @abstractmethod
    def get_slot(self, slot_id) -> ParkingSlot:
        ...

    @abstractmethod
    def get_booking(self, booking_id) -> Booking:
        ...

    @abstractmethod
    def list_active_bookings_for_slot(self, slot_id) -> list:
        ...

    @abstractmethod
    def lock_booking(self, booking_id) -> Booking:
        """Current row of a booking, locked until the surrounding transaction ends."""
        ...

    @abstractmethod
    def insert_booking_atomic(self, booking: Booking) -> Booking:
        ...

    @abstractmethod
    def update_booking_status(self, booking_id, status, expected_status, changed_by=None, notes="", **fields) -> Booking:
        ...

    @abstractmethod
    def update_booking_extension(self, booking_id, new_end_time, new_cost, added_hours, expected_end_time) -> Booking:
        ...


class DjangoBookingStore(BookingStore):
    def get_slot(self, slot_id) -> ParkingSlot:
        try:
            return ParkingSlot.objects.select_related("facility").get(pk=slot_id)
        except ParkingSlot.DoesNotExist:
            raise BookingNotFoundError(f"Slot not found with id: {slot_id}", params={"slot_id": slot_id})

    def get_booking(self, booking_id) -> Booking:
        try:
            return Booking.objects.select_related("slot", "user").get(pk=booking_id)
        except Booking.DoesNotExist:
            raise BookingNotFoundError(f"Booking not found with id: {booking_id}", params={"booking_id": booking_id})

    def list_active_bookings_for_slot(self, slot_id) -> list:
        return list(
            Booking.objects.filter(slot_id=slot_id, status__in=BLOCKING_STATUSES).order_by("start_time")
        )

    def _lock_slot(self, slot_id) -> ParkingSlot:
        try:
            return ParkingSlot.objects.select_for_update().get(pk=slot_id)
        except ParkingSlot.DoesNotExist:
            raise BookingNotFoundError(f"Slot not found with id: {slot_id}", params={"slot_id": slot_id})

    def lock_booking(self, booking_id) -> Booking:
        try:
            return Booking.objects.select_for_update().get(pk=booking_id)
        except Booking.DoesNotExist:
            raise BookingNotFoundError(f"Booking not found with id: {booking_id}", params={"booking_id": booking_id})

    @transaction.atomic
    def insert_booking_atomic(self, booking: Booking) -> Booking:
        """
        Insert 'booking' if no occupying booking on its slot overlaps it.

        Raises:
            SlotConflictError: overlap found under the slot lock.
            BookingNotFoundError: slot vanished.
        """
        self._lock_slot(booking.slot_id)
        existing = self.list_active_bookings_for_slot(booking.slot_id)
        if not check_availability(booking.slot_id, booking.start_time, booking.end_time, existing):
            conflicts = find_conflicts(booking.slot_id, booking.start_time, booking.end_time, existing)
            raise SlotConflictError(
                "The selected slot is already booked for the requested time period",
                code="overlap",
                params={
                    "slot_id": booking.slot_id,
                    "start_time": booking.start_time,
                    "end_time": booking.end_time,
                    "conflicting_booking_ids": [b.pk for b in conflicts],
                },
            )

        booking.status = BookingStatus.CONFIRMED
        booking.save()
        BookingHistory.objects.create(
            booking=booking,
            changed_by=booking.user,
            previous_status="",
            new_status=BookingStatus.CONFIRMED,
            notes="Booking created",
        )
        return booking

    @transaction.atomic
    def update_booking_status(self, booking_id, status, expected_status, changed_by=None, notes="", **fields) -> Booking:
        """
        Compare-and-swap the status of a booking.

        'expected_status' is the status the caller based its decision on;
        extra keyword fields (check_in_time, total_cost...) are written in
        the same save.
        """
        booking = self.lock_booking(booking_id)
        if booking.status != expected_status:
            raise SlotConflictError(
                "Booking status changed concurrently; reload and try again",
                code="status_changed",
                params={"booking_id": booking_id, "expected": expected_status, "actual": booking.status},
            )

        previous = booking.status
        booking.status = status
        for name, value in fields.items():
            setattr(booking, name, value)
        booking.save(update_fields=["status", "updated_at", *fields.keys()])

        BookingHistory.objects.create(
            booking=booking,
            changed_by=changed_by,
            previous_status=previous,
            new_status=status,
            notes=notes[:500],
        )
        return booking

    @transaction.atomic
    def update_booking_extension(self, booking_id, new_end_time, new_cost, added_hours, expected_end_time) -> Booking:
        """
        Move the end of a booking to 'new_end_time' and store the new cost.

        Re-admits the extended interval under the slot lock, excluding the
        booking itself, so an extension can never run into a reservation that
        starts inside the new window.
        """
        booking = self.lock_booking(booking_id)
        self._lock_slot(booking.slot_id)

        if booking.end_time != expected_end_time or booking.status not in BLOCKING_STATUSES:
            raise SlotConflictError(
                "Booking changed concurrently; reload and try again",
                code="booking_changed",
                params={"booking_id": booking_id, "expected_end_time": expected_end_time},
            )

        existing = self.list_active_bookings_for_slot(booking.slot_id)
        if not check_availability(booking.slot_id, booking.start_time, new_end_time, existing, exclude_booking_id=booking.pk):
            conflicts = find_conflicts(
                booking.slot_id, booking.start_time, new_end_time, existing, exclude_booking_id=booking.pk
            )
            raise SlotConflictError(
                "The slot is already booked during the requested extension",
                code="extension_overlap",
                params={
                    "booking_id": booking_id,
                    "new_end_time": new_end_time,
                    "conflicting_booking_ids": [b.pk for b in conflicts],
                },
            )

        booking.end_time = new_end_time
        booking.total_cost = new_cost
        booking.extended_time = booking.extended_time + added_hours
        booking.save(update_fields=["end_time", "total_cost", "extended_time", "updated_at"])
        return booking
