# notifications/signals.py
#
# Purpose:
# - Notify users when Booking or Payment status changes.
#   * CONFIRMED: on create
#   * CANCELLED / OVERDUE: on update when 'status' was saved
#   * Payment COMPLETED / FAILED: on update when 'status' was saved
#
# Notes:
# - Saves that pass update_fields without 'status' (extensions, cost
#   updates) never notify.
# - NotificationService logs email failures instead of raising.
#
from django.db.models.signals import post_save
from django.dispatch import receiver

from booking.models import Booking, BookingStatus, Payment
from booking.services.notification_service import NotificationService


def _status_saved(created, update_fields) -> bool:
    return created or update_fields is None or "status" in update_fields


@receiver(post_save, sender=Booking)
def booking_status_notifications(sender, instance: Booking, created: bool, update_fields=None, **kwargs):
    notifier = NotificationService()

    if created:
        if instance.status == BookingStatus.CONFIRMED:
            notifier.send_confirmation(instance)
        return

    if not _status_saved(created, update_fields):
        return

    if instance.status == BookingStatus.CANCELLED:
        notifier.send_cancellation(instance)
    elif instance.status == BookingStatus.OVERDUE:
        notifier.send_overdue(instance)


@receiver(post_save, sender=Payment)
def payment_status_notifications(sender, instance: Payment, created: bool, update_fields=None, **kwargs):
    if created or not _status_saved(created, update_fields):
        return
    if instance.status in (Payment.Status.COMPLETED, Payment.Status.FAILED):
        NotificationService().send_payment_result(instance)
