import logging

from django.contrib import admin, messages

from .exceptions import BookingValidationError, SlotConflictError
from .models import Booking, BookingHistory, BookingStatus, Facility, ParkingSlot, Payment, RateHistory, Vehicle
from .services.booking_manager import BookingManager
from .services.price_management import RateManagementService

logger = logging.getLogger(__name__)


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "city", "manager", "total_slots")
    search_fields = ("name", "city")


@admin.register(ParkingSlot)
class ParkingSlotAdmin(admin.ModelAdmin):
    list_display = ("id", "slot_number", "facility", "slot_type", "hourly_rate", "is_available")
    list_filter = ("facility", "slot_type", "is_available")
    search_fields = ("slot_number",)
    list_editable = ("hourly_rate", "is_available")  # allow inline toggle

    def save_model(self, request, obj, form, change):
        # Rate edits on existing slots go through the rate service so they
        # land in RateHistory and the audit log.
        if change and "hourly_rate" in form.changed_data:
            new_rate = obj.hourly_rate
            obj.hourly_rate = form.initial["hourly_rate"]
            super().save_model(request, obj, form, change)
            RateManagementService.update_slot_rate(obj, new_rate, admin_user=request.user)
            return
        super().save_model(request, obj, form, change)


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("id", "license_plate", "vehicle_type", "user", "is_default")
    list_filter = ("vehicle_type",)
    search_fields = ("license_plate", "user__username")


class BookingHistoryInline(admin.TabularInline):
    model = BookingHistory
    extra = 0
    readonly_fields = ("previous_status", "new_status", "changed_by", "changed_at", "notes")
    can_delete = False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "slot", "vehicle_number", "start_time", "end_time", "total_cost", "status")
    list_filter = ("status", "slot__facility")
    search_fields = ("user__username", "slot__slot_number", "vehicle_number")
    readonly_fields = ("status", "total_cost", "extended_time", "check_in_time", "check_out_time", "cancellation_time")
    inlines = [BookingHistoryInline]
    actions = ["resolve_overdue"]

    @admin.action(description="Check out selected overdue bookings")
    def resolve_overdue(self, request, queryset):
        manager = BookingManager()
        resolved = 0
        for booking in queryset.filter(status=BookingStatus.OVERDUE).select_related("slot"):
            try:
                manager.check_out(booking, changed_by=request.user)
            except (BookingValidationError, SlotConflictError) as e:
                logger.warning("Could not resolve overdue booking %s: %s", booking.pk, e)
                self.message_user(request, f"Booking #{booking.pk}: {e}", level=messages.WARNING)
                continue
            resolved += 1
        self.message_user(request, f"Resolved {resolved} overdue booking(s).")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "amount", "method", "status", "refund_amount", "payment_date")
    list_filter = ("status", "method")
    search_fields = ("transaction_id",)


@admin.register(RateHistory)
class RateHistoryAdmin(admin.ModelAdmin):
    list_display = ("slot", "old_rate", "new_rate", "changed_by", "changed_at")
    list_filter = ("slot__facility",)
    search_fields = ("slot__slot_number",)
