# audit/models.py
#
# Purpose:
# - Append-only record of operator-relevant actions (cancellations,
#   extensions, overdue sweeps, rate changes).
#
from django.db import models


class AuditLog(models.Model):
    class Severity(models.TextChoices):
        LOW = "LOW", "Low"
        MEDIUM = "MEDIUM", "Medium"
        HIGH = "HIGH", "High"

    username = models.CharField(max_length=150)
    action = models.CharField(max_length=100)
    resource = models.CharField(max_length=100)
    severity = models.CharField(max_length=10, choices=Severity.choices, default=Severity.LOW)
    details = models.CharField(max_length=2000, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-timestamp", "-id"]

    def __str__(self) -> str:
        return f"[{self.severity}] {self.username} {self.action} {self.resource}"
