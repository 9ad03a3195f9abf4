"""
settings_store.py
-----------------
Typed reads from SystemSetting with code-level defaults.

A missing row or a value that does not parse falls back to the default and
logs a warning, so a typo in the admin never takes bookings down.
"""

import logging

from .models import SystemSetting

logger = logging.getLogger(__name__)

CHECKIN_EARLY_MINUTES = "CHECKIN_EARLY_MINUTES"
REMINDER_LEAD_MINUTES = "REMINDER_LEAD_MINUTES"

DEFAULTS = {
    CHECKIN_EARLY_MINUTES: 30,
    REMINDER_LEAD_MINUTES: 30,
}


def get_int(key: str, default: int | None = None) -> int:
    if default is None:
        default = DEFAULTS[key]

    row = SystemSetting.objects.filter(key=key).first()
    if row is None:
        return default

    try:
        value = int(row.value.strip())
    except ValueError:
        logger.warning("SystemSetting %s=%r is not an integer; using %s", key, row.value, default)
        return default

    if value < 0:
        logger.warning("SystemSetting %s=%r is negative; using %s", key, row.value, default)
        return default
    return value
