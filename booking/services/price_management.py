# booking/services/price_management.py
#
# Purpose:
# - Allow facility managers/admins to change a slot's hourly rate
# - Keep existing bookings at the price they were booked for
# - Validate rate changes and log an audit trail (RateHistory + AuditLog)

from decimal import Decimal, InvalidOperation

from django.db import transaction

from audit.services import record_action

from ..exceptions import BookingValidationError
from ..models import RateHistory

MAX_HOURLY_RATE = Decimal("9999.99")


class RateManagementService:
    """
    Handles hourly-rate changes for parking slots.

    Rules:
    1. Rate must be numeric and >= 0 (free slots are allowed)
    2. Rate must not exceed MAX_HOURLY_RATE
    3. A change applies to future bookings only; Booking.total_cost is
       computed at booking time and never re-priced
    4. Every actual change is written to RateHistory and the audit log
    """

    @staticmethod
    def validate_rate(rate):
        """
        Validate an hourly rate.

        Args:
            rate: value to validate (string, int, float, or Decimal)

        Returns:
            Decimal: the rate rounded to cents

        Raises:
            BookingValidationError: if the rate is invalid
        """
        try:
            rate_decimal = Decimal(str(rate))
        except (ValueError, TypeError, InvalidOperation) as e:
            raise BookingValidationError(
                f"Invalid rate format. Rate must be a non-negative number. Received: {rate}. Error: {str(e)}",
                code="invalid_rate",
                params={"hourly_rate": rate},
            )

        if not rate_decimal.is_finite():
            raise BookingValidationError(
                f"Invalid rate format. Received: {rate}",
                code="invalid_rate",
                params={"hourly_rate": rate},
            )

        if rate_decimal < 0:
            raise BookingValidationError(
                f"Hourly rate cannot be negative. Received: {rate_decimal}",
                code="negative_rate",
                params={"hourly_rate": rate_decimal},
            )

        if rate_decimal > MAX_HOURLY_RATE:
            raise BookingValidationError(
                f"Hourly rate exceeds maximum allowed value of ${MAX_HOURLY_RATE}. Received: {rate_decimal}",
                code="rate_too_high",
                params={"hourly_rate": rate_decimal},
            )

        return rate_decimal.quantize(Decimal("0.01"))

    @staticmethod
    @transaction.atomic
    def update_slot_rate(slot, new_rate, admin_user=None):
        """
        Update a slot's hourly rate.

        Args:
            slot: ParkingSlot instance to update
            new_rate: new hourly rate
            admin_user: user making the change (for logging)

        Returns:
            dict: old_rate, new_rate, changed flag and who changed it

        Raises:
            BookingValidationError: if rate validation fails
        """
        old_rate = slot.hourly_rate
        validated_rate = RateManagementService.validate_rate(new_rate)

        changed = validated_rate != old_rate
        if changed:
            slot.hourly_rate = validated_rate
            slot.save(update_fields=["hourly_rate", "updated_at"])
            RateHistory.objects.create(
                slot=slot,
                old_rate=old_rate,
                new_rate=validated_rate,
                changed_by=admin_user,
            )
            record_action(
                "SLOT_RATE_CHANGED",
                f"ParkingSlot#{slot.pk}",
                user=admin_user,
                details=f"{slot.slot_number}: {old_rate} -> {validated_rate}",
                changes={"hourly_rate": [old_rate, validated_rate]},
            )

        return {
            "changed": changed,
            "slot_id": slot.id,
            "slot_number": slot.slot_number,
            "old_rate": str(old_rate),
            "new_rate": str(validated_rate),
            "changed_by": admin_user.username if admin_user else "system",
        }

    @staticmethod
    def get_rate_change_summary(slot, new_rate):
        """
        Summary of what would change, for a confirmation prompt.
        """
        current_rate = slot.hourly_rate
        validated_rate = RateManagementService.validate_rate(new_rate)

        if current_rate:
            percent_change = float((validated_rate - current_rate) / current_rate * 100)
        else:
            percent_change = None

        from .price_display import PriceDisplayService

        return {
            "slot_number": slot.slot_number,
            "current_rate": PriceDisplayService.format_price(current_rate),
            "new_rate": PriceDisplayService.format_price(validated_rate),
            "difference": PriceDisplayService.format_price(validated_rate - current_rate),
            "percent_change": percent_change,
        }
