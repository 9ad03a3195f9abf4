# booking/tests/test_booking_manager.py

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth.models import User
from django.test import TestCase

from audit.models import AuditLog
from booking.exceptions import BookingNotFoundError, BookingValidationError, SlotConflictError
from booking.models import Booking, BookingHistory, BookingStatus, Facility, ParkingSlot, Payment, Vehicle
from booking.services.booking_manager import BookingManager
from booking.services.booking_store import DjangoBookingStore
from configmgr.models import SystemSetting

NOW = datetime(2030, 1, 1, 8, 0, tzinfo=dt_timezone.utc)


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class ManagerTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="driver", email="driver@example.com", password="pass123")
        self.manager_user = User.objects.create_user(username="boss", email="boss@example.com", is_staff=True)
        self.facility = Facility.objects.create(name="Central", address="1 Main St", manager=self.manager_user)
        self.slot = ParkingSlot.objects.create(facility=self.facility, slot_number="A-01", hourly_rate=Decimal("10.00"))
        self.clock = FrozenClock(NOW)
        self.manager = BookingManager(clock=self.clock)

    def at(self, hours=0, minutes=0):
        return NOW + timedelta(hours=hours, minutes=minutes)

    def book(self, start_h, end_h, slot=None, user=None):
        return self.manager.create_booking(
            user or self.user, slot or self.slot, self.at(start_h), self.at(end_h), vehicle_number="abc123"
        )


class CreateBookingTests(ManagerTestCase):
    def test_creates_confirmed_booking_with_cost(self):
        booking = self.manager.create_booking(
            self.user, self.slot, self.at(3), self.at(5, 15), vehicle_number=" abc123 "
        )
        booking.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.CONFIRMED)
        self.assertEqual(booking.total_cost, Decimal("30.00"))
        self.assertEqual(booking.vehicle_number, "ABC123")
        self.assertEqual(booking.extended_time, Decimal("0.00"))

        history = BookingHistory.objects.get(booking=booking)
        self.assertEqual(history.new_status, BookingStatus.CONFIRMED)
        self.assertEqual(history.previous_status, "")

    def test_overlap_is_rejected(self):
        self.book(3, 5)
        with self.assertRaises(SlotConflictError) as cm:
            self.book(4, 6)
        self.assertEqual(cm.exception.code, "overlap")
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_is_accepted(self):
        self.book(3, 5)
        self.book(5, 7)
        self.assertEqual(Booking.objects.filter(status=BookingStatus.CONFIRMED).count(), 2)

    def test_cancelled_booking_frees_the_slot(self):
        first = self.book(3, 5)
        self.manager.cancel_booking(first)
        self.book(3, 5)
        self.assertEqual(Booking.objects.filter(status=BookingStatus.CONFIRMED).count(), 1)

    def test_unavailable_slot_is_rejected(self):
        self.slot.is_available = False
        self.slot.save()
        with self.assertRaises(SlotConflictError) as cm:
            self.book(3, 5)
        self.assertEqual(cm.exception.code, "slot_unavailable")
        self.assertEqual(cm.exception.message, "This slot is currently not available for booking")

    def test_window_policy_applies(self):
        with self.assertRaises(BookingValidationError) as cm:
            self.book(-1, 1)
        self.assertEqual(cm.exception.code, "start_in_past")
        self.assertFalse(Booking.objects.exists())

    def test_vehicle_must_belong_to_user(self):
        other = User.objects.create_user(username="other")
        vehicle = Vehicle.objects.create(user=other, license_plate="XYZ999")
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.create_booking(self.user, self.slot, self.at(3), self.at(4), vehicle=vehicle)
        self.assertEqual(cm.exception.code, "vehicle_not_owned")

    def test_vehicle_plate_is_used(self):
        vehicle = Vehicle.objects.create(user=self.user, license_plate="CAR001")
        booking = self.manager.create_booking(self.user, self.slot, self.at(3), self.at(4), vehicle=vehicle)
        self.assertEqual(booking.vehicle_number, "CAR001")
        self.assertEqual(booking.vehicle, vehicle)

    def test_vehicle_number_required(self):
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.create_booking(self.user, self.slot, self.at(3), self.at(4))
        self.assertEqual(cm.exception.code, "vehicle_required")

    def test_quote_reports_price_and_availability(self):
        quote = self.manager.quote(self.slot, self.at(3), self.at(4, 30))
        self.assertEqual(quote, {"available": True, "total_cost": Decimal("20.00"), "reason": None})

        self.book(3, 5)
        quote = self.manager.quote(self.slot, self.at(4), self.at(6))
        self.assertFalse(quote["available"])
        self.assertEqual(quote["reason"], "overlap")
        self.assertEqual(Booking.objects.count(), 1)


class ExtendBookingTests(ManagerTestCase):
    def test_extension_updates_end_and_cost(self):
        booking = self.book(3, 5)
        updated = self.manager.extend_booking(booking, self.at(6, 30))
        updated.refresh_from_db()
        self.assertEqual(updated.end_time, self.at(6, 30))
        self.assertEqual(updated.total_cost, Decimal("40.00"))
        self.assertEqual(updated.extended_time, Decimal("1.50"))
        self.assertTrue(AuditLog.objects.filter(action="BOOKING_EXTENDED").exists())

    def test_extension_into_next_booking_is_rejected(self):
        booking = self.book(3, 5)
        self.book(6, 8)
        with self.assertRaises(SlotConflictError) as cm:
            self.manager.extend_booking(booking, self.at(7))
        self.assertEqual(cm.exception.code, "extension_overlap")

        booking.refresh_from_db()
        self.assertEqual(booking.end_time, self.at(5))
        self.assertEqual(booking.total_cost, Decimal("20.00"))
        self.assertEqual(booking.extended_time, Decimal("0.00"))

    def test_extension_up_to_next_booking_is_allowed(self):
        booking = self.book(3, 5)
        self.book(6, 8)
        updated = self.manager.extend_booking(booking, self.at(6))
        self.assertEqual(updated.end_time, self.at(6))

    def test_extension_must_end_later(self):
        booking = self.book(3, 5)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.extend_booking(booking, self.at(4))
        self.assertEqual(cm.exception.code, "extension_not_later")

    def test_cancelled_booking_cannot_be_extended(self):
        booking = self.book(3, 5)
        self.manager.cancel_booking(booking)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.extend_booking(booking, self.at(6))
        self.assertEqual(cm.exception.code, "not_extendable")


class CancelBookingTests(ManagerTestCase):
    def _paid_booking(self, start_h, end_h):
        booking = self.book(start_h, end_h)
        payment = self.manager.record_payment(booking, Payment.Method.CREDIT_CARD)
        self.manager.complete_payment(payment, "txn-1")
        return booking

    def test_full_refund_recorded_on_payment(self):
        booking = self._paid_booking(3, 5)
        refund = self.manager.cancel_booking(booking, reason="Plans changed", changed_by=self.user)
        self.assertEqual(refund.percentage, 100)
        self.assertEqual(refund.amount, Decimal("20.00"))

        booking.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(booking.cancellation_time, NOW)

        payment = Payment.objects.get(booking=booking)
        self.assertEqual(payment.status, Payment.Status.REFUNDED)
        self.assertEqual(payment.refund_amount, Decimal("20.00"))

        log = AuditLog.objects.get(action="BOOKING_CANCELLED")
        self.assertEqual(log.severity, AuditLog.Severity.MEDIUM)
        self.assertEqual(log.username, "driver")

    def test_half_refund_between_one_and_two_hours(self):
        booking = self._paid_booking(3, 5)
        self.clock.advance(hours=1, minutes=30)
        refund = self.manager.cancel_booking(booking)
        self.assertEqual(refund.percentage, 50)
        self.assertEqual(refund.amount, Decimal("10.00"))

        payment = Payment.objects.get(booking=booking)
        self.assertEqual(payment.status, Payment.Status.PARTIALLY_REFUNDED)
        self.assertEqual(payment.refundable_balance, Decimal("10.00"))

    def test_stale_copy_cancel_refunds_extended_cost(self):
        booking = self._paid_booking(3, 5)
        stale = Booking.objects.get(pk=booking.pk)
        self.manager.extend_booking(booking, self.at(7))

        refund = self.manager.cancel_booking(stale)
        self.assertEqual(refund.percentage, 100)
        self.assertEqual(refund.amount, Decimal("40.00"))
        self.assertEqual(AuditLog.objects.get(action="BOOKING_CANCELLED").changes["refund_amount"], "40.00")

        # the payment only covered the original 20.00
        payment = Payment.objects.get(booking=booking)
        self.assertEqual(payment.refund_amount, Decimal("20.00"))
        self.assertEqual(payment.status, Payment.Status.REFUNDED)

    def test_no_refund_without_payment(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=2, minutes=30)
        refund = self.manager.cancel_booking(booking)
        self.assertEqual(refund.percentage, 0)
        self.assertEqual(refund.amount, Decimal("0.00"))

    def test_cancelled_booking_cannot_be_cancelled_again(self):
        booking = self.book(3, 5)
        self.manager.cancel_booking(booking)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.cancel_booking(booking)
        self.assertEqual(cm.exception.code, "invalid_transition")

    def test_history_records_each_status_change(self):
        booking = self.book(3, 5)
        self.manager.cancel_booking(booking, reason="Sick")
        statuses = list(BookingHistory.objects.filter(booking=booking).order_by("id").values_list("new_status", flat=True))
        self.assertEqual(statuses, [BookingStatus.CONFIRMED, BookingStatus.CANCELLED])


class CheckInOutTests(ManagerTestCase):
    def test_check_in_too_early(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=2, minutes=29)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.check_in(booking)
        self.assertEqual(cm.exception.code, "checkin_too_early")

    def test_check_in_within_early_window(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=2, minutes=30)
        updated = self.manager.check_in(booking)
        self.assertEqual(updated.status, BookingStatus.ACTIVE)
        self.assertEqual(updated.check_in_time, self.clock.now)

    def test_early_window_comes_from_system_setting(self):
        SystemSetting.objects.create(key="CHECKIN_EARLY_MINUTES", value="90")
        booking = self.book(3, 5)
        self.clock.advance(hours=1, minutes=30)
        self.assertEqual(self.manager.check_in(booking).status, BookingStatus.ACTIVE)

    def test_check_in_after_end(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=5, minutes=1)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.check_in(booking)
        self.assertEqual(cm.exception.code, "checkin_after_end")

    def test_check_out_on_time(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=3)
        booking = self.manager.check_in(booking)
        self.clock.advance(hours=1)
        done = self.manager.check_out(booking)
        self.assertEqual(done.status, BookingStatus.COMPLETED)
        self.assertEqual(done.total_cost, Decimal("20.00"))
        self.assertEqual(done.check_out_time, self.clock.now)

    def test_check_out_late_charges_overstay(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=3)
        booking = self.manager.check_in(booking)
        self.clock.advance(hours=2, minutes=30)
        done = self.manager.check_out(booking)
        self.assertEqual(done.total_cost, Decimal("30.00"))

    def test_confirmed_booking_cannot_check_out(self):
        booking = self.book(3, 5)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.check_out(booking)
        self.assertEqual(cm.exception.code, "invalid_transition")

    def test_stale_copy_check_out_keeps_extension_charge(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=3)
        self.manager.check_in(booking)

        stale = Booking.objects.get(pk=booking.pk)
        extended = self.manager.extend_booking(Booking.objects.get(pk=booking.pk), self.at(8))
        self.assertEqual(extended.total_cost, Decimal("50.00"))

        done = self.manager.check_out(stale)
        self.assertEqual(done.total_cost, Decimal("50.00"))
        self.assertEqual(done.end_time, self.at(8))
        self.assertEqual(Booking.objects.get(pk=booking.pk).total_cost, Decimal("50.00"))

    def test_stale_copy_check_out_charges_overstay_from_stored_end(self):
        booking = self.book(3, 5)
        self.clock.advance(hours=3)
        self.manager.check_in(booking)

        stale = Booking.objects.get(pk=booking.pk)
        self.manager.extend_booking(Booking.objects.get(pk=booking.pk), self.at(6, 30))
        self.clock.advance(hours=4)

        # stored end is 6:30, so only 30 minutes (one billable hour) are overstay
        done = self.manager.check_out(stale)
        self.assertEqual(done.total_cost, Decimal("50.00"))

    def test_stale_status_loses_the_race(self):
        booking = self.book(3, 5)
        stale = Booking.objects.get(pk=booking.pk)
        self.manager.cancel_booking(booking)

        self.clock.advance(hours=3)
        with self.assertRaises(SlotConflictError) as cm:
            self.manager.check_in(stale)
        self.assertEqual(cm.exception.code, "status_changed")
        stale.refresh_from_db()
        self.assertEqual(stale.status, BookingStatus.CANCELLED)


class OverdueTests(ManagerTestCase):
    def _active_booking(self):
        booking = self.book(1, 2)
        self.clock.advance(hours=1)
        return self.manager.check_in(booking)

    def test_sweep_marks_active_bookings_past_end(self):
        active = self._active_booking()
        upcoming = self.book(5, 6)
        self.clock.advance(hours=1, minutes=1)

        self.assertEqual(self.manager.sweep_overdue(), 1)
        active.refresh_from_db()
        upcoming.refresh_from_db()
        self.assertEqual(active.status, BookingStatus.OVERDUE)
        self.assertEqual(upcoming.status, BookingStatus.CONFIRMED)

        log = AuditLog.objects.get(action="BOOKING_OVERDUE")
        self.assertEqual(log.severity, AuditLog.Severity.HIGH)
        self.assertEqual(log.username, "system")

        # second run finds nothing new
        self.assertEqual(self.manager.sweep_overdue(), 0)

    def test_sweep_leaves_bookings_still_running(self):
        self._active_booking()
        self.clock.advance(minutes=59)
        self.assertEqual(self.manager.sweep_overdue(), 0)

    def test_overdue_check_out_completes_and_charges(self):
        active = self._active_booking()
        self.clock.advance(hours=2)
        self.manager.sweep_overdue()
        active.refresh_from_db()

        done = self.manager.check_out(active, changed_by=self.manager_user)
        self.assertEqual(done.status, BookingStatus.COMPLETED)
        self.assertEqual(done.total_cost, Decimal("20.00"))
        self.assertTrue(AuditLog.objects.filter(action="OVERDUE_RESOLVED", username="boss").exists())

    def test_overdue_booking_cannot_be_cancelled(self):
        active = self._active_booking()
        self.clock.advance(hours=2)
        self.manager.sweep_overdue()
        active.refresh_from_db()
        with self.assertRaises(BookingValidationError):
            self.manager.cancel_booking(active)


class PaymentTests(ManagerTestCase):
    def test_payment_flow(self):
        booking = self.book(3, 5)
        payment = self.manager.record_payment(booking, Payment.Method.CASH)
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.amount, Decimal("20.00"))

        self.manager.complete_payment(payment, "txn-42")
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.payment_date, NOW)
        self.assertTrue(payment.is_successful)

        with self.assertRaises(BookingValidationError) as cm:
            self.manager.fail_payment(payment, "declined")
        self.assertEqual(cm.exception.code, "payment_not_pending")

    def test_failed_payment(self):
        booking = self.book(3, 5)
        payment = self.manager.record_payment(booking, Payment.Method.CREDIT_CARD)
        self.manager.fail_payment(payment, "Card declined")
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.FAILED)
        self.assertEqual(payment.gateway_response, "Card declined")

    def test_one_payment_per_booking(self):
        booking = self.book(3, 5)
        self.manager.record_payment(booking, Payment.Method.CASH)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.record_payment(booking, Payment.Method.CASH)
        self.assertEqual(cm.exception.code, "payment_exists")

    def test_cancel_voids_pending_payment(self):
        booking = self.book(3, 5)
        payment = self.manager.record_payment(booking, Payment.Method.CREDIT_CARD)
        self.manager.cancel_booking(booking)

        voided = Payment.objects.get(pk=payment.pk)
        self.assertEqual(voided.status, Payment.Status.FAILED)
        self.assertIn("Voided", voided.gateway_response)

        # the caller's copy still says PENDING; the stored row decides
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.complete_payment(payment, "txn-9")
        self.assertEqual(cm.exception.code, "payment_not_pending")
        voided.refresh_from_db()
        self.assertEqual(voided.status, Payment.Status.FAILED)
        self.assertIsNone(voided.transaction_id)

    def test_payment_for_cancelled_booking_cannot_complete(self):
        booking = self.book(3, 5)
        payment = self.manager.record_payment(booking, Payment.Method.CASH)
        Booking.objects.filter(pk=booking.pk).update(status=BookingStatus.CANCELLED)

        with self.assertRaises(BookingValidationError) as cm:
            self.manager.complete_payment(payment, "txn-10")
        self.assertEqual(cm.exception.code, "not_payable")
        self.assertEqual(Payment.objects.get(pk=payment.pk).status, Payment.Status.PENDING)

    def test_unknown_method(self):
        booking = self.book(3, 5)
        with self.assertRaises(BookingValidationError) as cm:
            self.manager.record_payment(booking, "BITCOIN")
        self.assertEqual(cm.exception.code, "invalid_payment_method")

    def test_refund_cannot_exceed_balance(self):
        booking = self.book(3, 5)
        payment = self.manager.record_payment(booking, Payment.Method.CASH)
        self.manager.complete_payment(payment, "txn-7")
        with self.assertRaises(BookingValidationError) as cm:
            payment.process_refund(Decimal("25.00"))
        self.assertEqual(cm.exception.code, "refund_exceeds_balance")


class StoreTests(ManagerTestCase):
    def test_insert_rechecks_under_lock(self):
        store = DjangoBookingStore()
        self.book(3, 5)
        clash = Booking(
            user=self.user, slot=self.slot, vehicle_number="ZZZ1",
            start_time=self.at(4), end_time=self.at(6), total_cost=Decimal("20.00"),
        )
        with self.assertRaises(SlotConflictError) as cm:
            store.insert_booking_atomic(clash)
        self.assertEqual(cm.exception.code, "overlap")
        self.assertEqual(len(cm.exception.params["conflicting_booking_ids"]), 1)

    def test_missing_booking(self):
        with self.assertRaises(BookingNotFoundError):
            DjangoBookingStore().get_booking(999)
