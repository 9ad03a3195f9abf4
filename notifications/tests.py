from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone

from booking.models import Booking, BookingStatus, Facility, ParkingSlot, Payment
from booking.services.booking_manager import BookingManager
from notifications.models import Notification


@override_settings(EMAIL_HOST_USER="")
class NotificationTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="testuser", email="test@example.com", password="pass123")
        facility = Facility.objects.create(name="Central", address="1 Main St", manager=self.user)
        self.slot = ParkingSlot.objects.create(facility=facility, slot_number="A-01", hourly_rate=Decimal("10.00"))
        self.start = timezone.now() + timedelta(hours=5)
        self.manager = BookingManager()

    def _book(self):
        return self.manager.create_booking(
            self.user, self.slot, self.start, self.start + timedelta(hours=2), vehicle_number="ABC123"
        )

    def test_email_sent_when_booking_confirmed(self):
        booking = self._book()

        # Email should have been sent
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("confirmed", mail.outbox[0].body)
        self.assertEqual(mail.outbox[0].to, ["test@example.com"])

        note = Notification.objects.get(user=self.user)
        self.assertEqual(note.type, Notification.Type.BOOKING_CONFIRMATION)
        self.assertTrue(note.sent)
        self.assertEqual(note.link, f"/booking/{booking.pk}")

    def test_email_sent_when_booking_cancelled(self):
        booking = self._book()
        mail.outbox.clear()

        self.manager.cancel_booking(booking)

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("cancelled", mail.outbox[0].body)

    @override_settings(EMAIL_HOST_USER="owner@example.com")
    def test_owner_alert_on_cancellation(self):
        booking = self._book()
        mail.outbox.clear()

        self.manager.cancel_booking(booking)

        self.assertEqual(len(mail.outbox), 2)
        self.assertEqual(mail.outbox[1].to, ["owner@example.com"])

    def test_extension_does_not_notify(self):
        booking = self._book()
        mail.outbox.clear()

        self.manager.extend_booking(booking, booking.end_time + timedelta(hours=1))

        self.assertEqual(len(mail.outbox), 0)

    def test_overdue_alert_is_high_priority(self):
        booking = self._book()
        Booking.objects.filter(pk=booking.pk).update(status=BookingStatus.ACTIVE)
        booking.refresh_from_db()
        booking.status = BookingStatus.OVERDUE
        booking.save(update_fields=["status"])

        note = Notification.objects.filter(user=self.user, type=Notification.Type.ALERT).get()
        self.assertTrue(note.is_high_priority)
        self.assertIn("exceeded", note.message)

    def test_payment_results_notify(self):
        booking = self._book()
        payment = self.manager.record_payment(booking, Payment.Method.CREDIT_CARD)
        mail.outbox.clear()

        self.manager.complete_payment(payment, "txn-1")

        self.assertEqual(len(mail.outbox), 1)
        self.assertTrue(Notification.objects.filter(type=Notification.Type.PAYMENT_SUCCESS).exists())

    def test_user_without_email_is_recorded_unsent(self):
        self.user.email = ""
        self.user.save()

        self._book()

        self.assertEqual(len(mail.outbox), 0)
        self.assertFalse(Notification.objects.get(user=self.user).sent)

    def test_mark_as_read(self):
        self._book()
        note = Notification.objects.get(user=self.user)
        note.mark_as_read()
        note.refresh_from_db()
        self.assertTrue(note.is_read)
