# notifications/models.py
#
# Purpose:
# - Record messages sent to users (booking confirmation, cancellation,
#   reminders, overdue alerts, payment results).
#
# Design:
# - FK to the auth user who owns the booking.
# - 'sent' indicates the email delivery attempt result; 'is_read' is the
#   in-app read marker.
# - related_entity_type/id point back at the booking or payment.
#
from django.conf import settings
from django.db import models


class Notification(models.Model):
    class Type(models.TextChoices):
        BOOKING_CONFIRMATION = "BOOKING_CONFIRMATION", "Booking confirmation"
        PAYMENT_SUCCESS = "PAYMENT_SUCCESS", "Payment success"
        PAYMENT_FAILURE = "PAYMENT_FAILURE", "Payment failure"
        REMINDER = "REMINDER", "Reminder"
        ALERT = "ALERT", "Alert"
        SYSTEM_UPDATE = "SYSTEM_UPDATE", "System update"

    class Priority(models.TextChoices):
        LOW = "LOW", "Low"
        MEDIUM = "MEDIUM", "Medium"
        HIGH = "HIGH", "High"
        URGENT = "URGENT", "Urgent"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    message = models.TextField()
    type = models.CharField(max_length=30, choices=Type.choices)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    is_read = models.BooleanField(default=False)
    sent = models.BooleanField(default=False)
    related_entity_type = models.CharField(max_length=50, blank=True)
    related_entity_id = models.CharField(max_length=50, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        label = getattr(self.user, "username", None) or "user"
        return f"{self.type} to {label} at {self.created_at:%Y-%m-%d %H:%M}"

    @property
    def is_high_priority(self) -> bool:
        return self.priority in (self.Priority.HIGH, self.Priority.URGENT)

    @property
    def link(self):
        if not self.related_entity_type or not self.related_entity_id:
            return None
        return f"/{self.related_entity_type.lower()}/{self.related_entity_id}"

    def mark_as_read(self):
        if not self.is_read:
            self.is_read = True
            self.save(update_fields=["is_read"])
