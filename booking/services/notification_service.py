"""
NotificationService
-------------------
Purpose:
- Tell users about their bookings and payments: a Notification row for the
  in-app list plus an email.
- In development, Django's console email backend prints the email; set
  EMAIL_BACKEND to SMTP in production.

Delivery policy:
- An email failure is logged and recorded as sent=False; it never breaks the
  booking operation that triggered it.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

from notifications.models import Notification

from .price_display import PriceDisplayService

logger = logging.getLogger(__name__)

DATE_FORMAT = "%A, %B %d, %Y at %I:%M %p"


def _send(subject: str, body: str, to_email: str) -> bool:
    """
    Send a single email. Returns True if the backend accepted it.
    """
    if not to_email:
        return False
    try:
        send_mail(
            subject=subject,
            message=body,
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            recipient_list=[to_email],
            fail_silently=False,  # raise so we can log; we still catch it below
        )
    except Exception:
        logger.exception("email send error to %s (subject: %s)", to_email, subject)
        return False
    return True


class NotificationService:
    def _notify(self, user, subject, body, type_, priority=Notification.Priority.MEDIUM,
                entity_type="", entity_id=""):
        sent = _send(subject, body, getattr(user, "email", ""))
        return Notification.objects.create(
            user=user,
            message=body,
            type=type_,
            priority=priority,
            sent=sent,
            related_entity_type=entity_type,
            related_entity_id=str(entity_id),
        )

    def send_confirmation(self, booking):
        user = booking.user
        body = (
            f"Hi {user.get_full_name() or user.username},\n\n"
            f"Your parking booking is confirmed.\n\n"
            f"Booking ID: {booking.id}\n"
            f"Slot: {booking.slot.slot_number} ({booking.slot.facility.name})\n"
            f"Vehicle: {booking.vehicle_number}\n"
            f"From: {booking.start_time.strftime(DATE_FORMAT)}\n"
            f"Until: {booking.end_time.strftime(DATE_FORMAT)}\n"
            f"Total: {PriceDisplayService.format_price(booking.total_cost)}\n"
        )
        return self._notify(
            user, f"Booking Confirmation #{booking.id}", body,
            Notification.Type.BOOKING_CONFIRMATION,
            entity_type="Booking", entity_id=booking.id,
        )

    def send_cancellation(self, booking):
        user = booking.user
        body = (
            f"Dear {user.get_full_name() or user.username},\n\n"
            f"Your booking #{booking.id} for slot {booking.slot.slot_number} on "
            f"{booking.start_time.strftime(DATE_FORMAT)} has been cancelled.\n"
            f"Any refund due is returned to your original payment method.\n"
        )
        notification = self._notify(
            user, f"Booking #{booking.id} Cancelled", body,
            Notification.Type.ALERT,
            entity_type="Booking", entity_id=booking.id,
        )

        # Optional owner/admin alert: only if EMAIL_HOST_USER is configured
        owner_email = getattr(settings, "EMAIL_HOST_USER", None)
        if owner_email:
            body_owner = (
                f"ALERT: Booking #{booking.id} cancelled.\n"
                f"User: {user.username} ({user.email})\n"
                f"Slot: {booking.slot.slot_number}\n"
                f"Original Time: {booking.start_time.strftime(DATE_FORMAT)}\n"
                f"Cancellation Time: {booking.cancellation_time}\n"
            )
            _send(f"ALERT: Booking #{booking.id} CANCELLED", body_owner, owner_email)
        return notification

    def send_reminder(self, booking, minutes_before: int):
        user = booking.user
        body = (
            f"Reminder: your parking slot {booking.slot.slot_number} booking starts at "
            f"{booking.start_time.strftime(DATE_FORMAT)} (in about {minutes_before} minutes). "
            f"Don't forget to check in!"
        )
        return self._notify(
            user, f"Reminder: Booking #{booking.id}", body,
            Notification.Type.REMINDER,
            entity_type="Booking", entity_id=booking.id,
        )

    def send_overdue(self, booking):
        body = (
            f"Your booking for slot {booking.slot.slot_number} has exceeded the scheduled end time "
            f"({booking.end_time.strftime(DATE_FORMAT)}). Additional charges apply until you check out."
        )
        return self._notify(
            booking.user, f"Booking #{booking.id} Overdue", body,
            Notification.Type.ALERT,
            priority=Notification.Priority.HIGH,
            entity_type="Booking", entity_id=booking.id,
        )

    def send_payment_result(self, payment):
        booking = payment.booking
        if payment.status == payment.Status.COMPLETED:
            type_ = Notification.Type.PAYMENT_SUCCESS
            body = (
                f"We received your payment of {PriceDisplayService.format_price(payment.amount)} "
                f"for booking #{booking.id} (transaction {payment.transaction_id})."
            )
            priority = Notification.Priority.LOW
        else:
            type_ = Notification.Type.PAYMENT_FAILURE
            body = (
                f"Your payment of {PriceDisplayService.format_price(payment.amount)} for booking "
                f"#{booking.id} failed. {payment.gateway_response}".strip()
            )
            priority = Notification.Priority.HIGH
        return self._notify(
            booking.user, f"Payment for Booking #{booking.id}", body, type_,
            priority=priority, entity_type="Payment", entity_id=payment.id,
        )
