"""
booking_manager.py
------------------
Coordinates the booking lifecycle on top of the pure engine and the store.

Flow for a new booking:
1) validate the window against "now" (past start, 1h..24h),
2) both gates: the manual slot flag AND the time-based overlap check,
3) price it,
4) insert through the store's atomic check-and-insert.

Step 2's overlap check is advisory (fast feedback); step 4 is the one that
actually guarantees no double booking.

Notes:
- The clock is injected (defaults to django.utils.timezone.now) so tests can
  pin "now".
- Status changes go through the store's compare-and-swap so a check-in and a
  concurrent cancellation cannot both win.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from audit.models import AuditLog
from audit.services import record_action
from configmgr.settings_store import CHECKIN_EARLY_MINUTES, get_int

from ..exceptions import BookingValidationError, SlotConflictError
from ..models import Booking, BookingStatus, Payment
from .availability_engine import (
    check_availability,
    compute_cost,
    compute_extension_cost,
    compute_refund,
    hours_between,
    quantize_money,
    validate_booking_window,
)
from .booking_store import DjangoBookingStore
from .lifecycle import assert_transition

logger = logging.getLogger(__name__)


class BookingManager:
    def __init__(self, store=None, clock=None):
        self.store = store or DjangoBookingStore()
        self.clock = clock or timezone.now

    # -------------------- admission --------------------
    def _admit(self, slot, start_time, end_time, now):
        validate_booking_window(start_time, end_time, now)

        if not slot.is_available:
            raise SlotConflictError(
                "This slot is currently not available for booking",
                code="slot_unavailable",
                params={"slot_id": slot.pk},
            )

        existing = self.store.list_active_bookings_for_slot(slot.pk)
        if not check_availability(slot.pk, start_time, end_time, existing):
            raise SlotConflictError(
                "The selected slot is already booked for the requested time period",
                code="overlap",
                params={"slot_id": slot.pk, "start_time": start_time, "end_time": end_time},
            )

    def quote(self, slot, start_time, end_time) -> dict:
        """
        Dry run of create_booking: same checks, no write.

        Returns:
            dict with 'available' (bool), 'total_cost' (Decimal or None) and
            'reason' (conflict code or None). Validation errors still raise.
        """
        now = self.clock()
        try:
            self._admit(slot, start_time, end_time, now)
        except SlotConflictError as e:
            return {"available": False, "total_cost": None, "reason": e.code}
        return {
            "available": True,
            "total_cost": compute_cost(start_time, end_time, slot.hourly_rate),
            "reason": None,
        }

    def create_booking(self, user, slot, start_time, end_time, vehicle=None, vehicle_number=""):
        """
        Create a CONFIRMED booking.

        Args:
            user: auth user making the booking
            slot: ParkingSlot (its hourly_rate prices the booking)
            start_time, end_time: aware datetimes
            vehicle: optional Vehicle owned by 'user'
            vehicle_number: plate, required when no vehicle is given

        Raises:
            BookingValidationError: window out of policy, bad vehicle.
            SlotConflictError: slot switched off or interval taken.
        """
        now = self.clock()

        if vehicle is not None:
            if vehicle.user_id != user.pk:
                raise BookingValidationError(
                    "Vehicle does not belong to this user",
                    code="vehicle_not_owned",
                    params={"vehicle_id": vehicle.pk, "user_id": user.pk},
                )
            vehicle_number = vehicle.license_plate
        vehicle_number = (vehicle_number or "").strip().upper()
        if not vehicle_number:
            raise BookingValidationError("Vehicle number is required", code="vehicle_required")

        self._admit(slot, start_time, end_time, now)

        booking = Booking(
            user=user,
            slot=slot,
            vehicle=vehicle,
            vehicle_number=vehicle_number,
            start_time=start_time,
            end_time=end_time,
            total_cost=compute_cost(start_time, end_time, slot.hourly_rate),
            extended_time=Decimal("0.00"),
        )
        booking = self.store.insert_booking_atomic(booking)
        logger.info(
            "Booking %s created on slot %s %s-%s cost=%s",
            booking.pk, slot.slot_number, start_time.isoformat(), end_time.isoformat(), booking.total_cost,
        )
        return booking

    # -------------------- extension --------------------
    def extend_booking(self, booking, new_end_time, changed_by=None):
        """
        Push the end of a CONFIRMED/ACTIVE booking to 'new_end_time'.

        Cost grows by ceil(extra hours) * rate. If the longer interval runs
        into another booking the store raises SlotConflictError and the
        booking keeps its old end time and cost.
        """
        if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.ACTIVE):
            raise BookingValidationError(
                f"Only confirmed or active bookings can be extended (status is {booking.status})",
                code="not_extendable",
                params={"booking_id": booking.pk, "status": booking.status},
            )

        old_end = booking.end_time
        old_cost = booking.total_cost
        extra = compute_extension_cost(old_end, new_end_time, booking.slot.hourly_rate)
        added_hours = hours_between(old_end, new_end_time).quantize(Decimal("0.01"))

        updated = self.store.update_booking_extension(
            booking.pk,
            new_end_time=new_end_time,
            new_cost=quantize_money(old_cost + extra),
            added_hours=added_hours,
            expected_end_time=old_end,
        )
        record_action(
            "BOOKING_EXTENDED",
            f"Booking#{updated.pk}",
            user=changed_by,
            details=f"Extended by {added_hours}h for {extra}",
            changes={
                "end_time": [old_end, updated.end_time],
                "total_cost": [old_cost, updated.total_cost],
            },
        )
        logger.info("Booking %s extended to %s (+%s)", updated.pk, new_end_time.isoformat(), extra)
        return updated

    # -------------------- cancellation --------------------
    @transaction.atomic
    def cancel_booking(self, booking, reason="", changed_by=None):
        """
        Cancel a CONFIRMED/ACTIVE booking and refund by the time-to-start tier.

        Returns:
            RefundQuote(amount, percentage). When a completed payment exists
            the amount is also recorded on it (capped at its refundable
            balance); a still-pending payment is voided.

        The refund is priced from the stored row, so a stale "booking"
        cannot undo an extension made since it was loaded.
        """
        current = self.store.lock_booking(booking.pk)
        assert_transition(current.status, BookingStatus.CANCELLED)

        now = self.clock()
        refund = compute_refund(current.total_cost, current.start_time, now)

        updated = self.store.update_booking_status(
            current.pk,
            BookingStatus.CANCELLED,
            expected_status=current.status,
            changed_by=changed_by,
            notes=f"Cancelled: {reason}" if reason else "Cancelled",
            cancellation_time=now,
        )

        payment = Payment.objects.select_for_update().filter(booking=updated).first()
        if payment is not None and payment.status in (Payment.Status.COMPLETED, Payment.Status.PARTIALLY_REFUNDED):
            applied = min(refund.amount, payment.refundable_balance)
            if applied > 0:
                payment.process_refund(applied, reason or "Booking cancelled")
                payment.save(update_fields=["refund_amount", "status", "gateway_response"])
        elif payment is not None and payment.status == Payment.Status.PENDING:
            # queryset update: a voided payment is not a failed charge, so no
            # payment notification goes out
            Payment.objects.filter(pk=payment.pk).update(
                status=Payment.Status.FAILED,
                gateway_response=f"Voided: booking #{updated.pk} cancelled",
            )

        record_action(
            "BOOKING_CANCELLED",
            f"Booking#{updated.pk}",
            user=changed_by,
            details=reason,
            changes={"refund_amount": refund.amount, "refund_percentage": refund.percentage},
            severity=AuditLog.Severity.MEDIUM,
        )
        logger.info("Booking %s cancelled; refund %s (%s%%)", updated.pk, refund.amount, refund.percentage)
        booking.status = updated.status
        booking.cancellation_time = updated.cancellation_time
        return refund

    # -------------------- check-in / check-out --------------------
    def check_in(self, booking, changed_by=None):
        """
        CONFIRMED -> ACTIVE. Allowed from CHECKIN_EARLY_MINUTES before start
        until the booking's end time.
        """
        assert_transition(booking.status, BookingStatus.ACTIVE)

        now = self.clock()
        early = timedelta(minutes=get_int(CHECKIN_EARLY_MINUTES))
        earliest = booking.start_time - early
        if now < earliest:
            raise BookingValidationError(
                f"Check-in is too early. Earliest check-in time is {earliest.isoformat()}",
                code="checkin_too_early",
                params={"earliest": earliest, "now": now},
            )
        if now > booking.end_time:
            raise BookingValidationError(
                "Cannot check-in after booking end time",
                code="checkin_after_end",
                params={"end_time": booking.end_time, "now": now},
            )

        updated = self.store.update_booking_status(
            booking.pk,
            BookingStatus.ACTIVE,
            expected_status=booking.status,
            changed_by=changed_by,
            notes="Checked in",
            check_in_time=now,
        )
        logger.info("Booking %s checked in", updated.pk)
        return updated

    def check_out(self, booking, changed_by=None):
        """
        ACTIVE/OVERDUE -> COMPLETED.

        Leaving after end_time is charged like an extension up to the
        check-out time; this is also how operators resolve OVERDUE bookings.
        End time and cost are read from the locked row, not from 'booking'.
        """
        with transaction.atomic():
            current = self.store.lock_booking(booking.pk)
            assert_transition(current.status, BookingStatus.COMPLETED)

            now = self.clock()
            overstay = Decimal("0.00")
            if now > current.end_time:
                overstay = compute_extension_cost(current.end_time, now, current.slot.hourly_rate)

            was_overdue = current.status == BookingStatus.OVERDUE
            updated = self.store.update_booking_status(
                current.pk,
                BookingStatus.COMPLETED,
                expected_status=current.status,
                changed_by=changed_by,
                notes=f"Checked out (overstay charge {overstay})" if overstay else "Checked out",
                check_out_time=now,
                total_cost=quantize_money(current.total_cost + overstay),
            )
            if was_overdue:
                record_action(
                    "OVERDUE_RESOLVED",
                    f"Booking#{updated.pk}",
                    user=changed_by,
                    details=f"Overstay charge {overstay}",
                    changes={"total_cost": [current.total_cost, updated.total_cost]},
                    severity=AuditLog.Severity.MEDIUM,
                )
        logger.info("Booking %s checked out; overstay=%s", updated.pk, overstay)
        return updated

    # -------------------- scheduled sweep --------------------
    def sweep_overdue(self) -> int:
        """
        Mark ACTIVE bookings whose end time has passed as OVERDUE.
        Meant to run from a scheduler (see the mark_overdue command).
        """
        now = self.clock()
        count = 0
        for booking in Booking.objects.filter(status=BookingStatus.ACTIVE, end_time__lt=now).order_by("end_time"):
            try:
                self.store.update_booking_status(
                    booking.pk,
                    BookingStatus.OVERDUE,
                    expected_status=BookingStatus.ACTIVE,
                    notes="Not checked out by end time",
                )
            except SlotConflictError:
                # Checked out (or cancelled) between the query and the lock.
                logger.info("Booking %s changed before overdue sweep reached it", booking.pk)
                continue
            record_action(
                "BOOKING_OVERDUE",
                f"Booking#{booking.pk}",
                details=f"End time {booking.end_time.isoformat()} passed without check-out",
                severity=AuditLog.Severity.HIGH,
            )
            count += 1

        if count:
            logger.info("Marked %s booking(s) as overdue", count)
        return count

    # -------------------- payments --------------------
    def record_payment(self, booking, method):
        """Open a PENDING payment for the booking's current total."""
        if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.ACTIVE):
            raise BookingValidationError(
                "Payments can only be recorded for confirmed or active bookings",
                code="not_payable",
                params={"booking_id": booking.pk, "status": booking.status},
            )
        if method not in Payment.Method.values:
            raise BookingValidationError(
                f"Unknown payment method: {method}",
                code="invalid_payment_method",
                params={"method": method},
            )
        if Payment.objects.filter(booking=booking).exists():
            raise BookingValidationError(
                "A payment already exists for this booking",
                code="payment_exists",
                params={"booking_id": booking.pk},
            )
        return Payment.objects.create(booking=booking, amount=booking.total_cost, method=method)

    def _lock_pending_payment(self, payment, verb):
        current = Payment.objects.select_for_update().select_related("booking").get(pk=payment.pk)
        if current.status != Payment.Status.PENDING:
            raise BookingValidationError(
                f"Only pending payments can {verb}",
                code="payment_not_pending",
                params={"payment_id": payment.pk, "status": current.status},
            )
        return current

    @transaction.atomic
    def complete_payment(self, payment, transaction_id):
        """
        PENDING -> COMPLETED, only while the booking is still payable.
        Status checks use the stored rows, not the caller's copies.
        """
        current = self._lock_pending_payment(payment, "be completed")
        booking_status = current.booking.status
        if booking_status not in (BookingStatus.CONFIRMED, BookingStatus.ACTIVE):
            raise BookingValidationError(
                f"Payments cannot be completed for a {booking_status} booking",
                code="not_payable",
                params={"payment_id": payment.pk, "booking_id": current.booking_id, "status": booking_status},
            )
        payment.mark_completed(transaction_id, self.clock())
        payment.save(update_fields=["status", "transaction_id", "payment_date"])
        return payment

    @transaction.atomic
    def fail_payment(self, payment, reason=""):
        self._lock_pending_payment(payment, "fail")
        payment.status = Payment.Status.FAILED
        payment.gateway_response = reason[:500]
        payment.save(update_fields=["status", "gateway_response"])
        return payment
