"""
Helpers to write AuditLog rows from domain services.
"""

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder

from .models import AuditLog

logger = logging.getLogger(__name__)


def _username(user) -> str:
    if user is None:
        return "system"
    return getattr(user, "username", None) or str(user)


def record_action(action, resource, user=None, details="", changes=None, severity=AuditLog.Severity.LOW, ip_address=None):
    """
    Store one audit entry.

    Args:
        action: verb, e.g. "BOOKING_CANCELLED"
        resource: "<Model>#<pk>", e.g. "Booking#12"
        user: acting user or None for scheduled jobs
        changes: dict of before/after values (datetimes and Decimals allowed)
    """
    # Round-trip through the Django encoder so Decimal/datetime values fit JSONField.
    payload = json.loads(json.dumps(changes or {}, cls=DjangoJSONEncoder))
    entry = AuditLog.objects.create(
        username=_username(user),
        action=action,
        resource=resource,
        severity=severity,
        details=details[:2000],
        changes=payload,
        ip_address=ip_address,
    )
    logger.info("audit %s %s by %s", action, resource, entry.username)
    return entry
