from django.db import models


class SystemSetting(models.Model):
    """
    Operator-tunable knob, edited in the admin and read through
    configmgr.settings_store (which owns the defaults).

    Known keys:
      - CHECKIN_EARLY_MINUTES: how long before start a driver may check in
      - REMINDER_LEAD_MINUTES: how far ahead send_reminders looks
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=200)
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]

    def save(self, *args, **kwargs):
        self.key = self.key.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.key}={self.value}"
