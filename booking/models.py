# booking/models.py
#
# Purpose:
# - Core domain models for the parking booking system.
#
# Design highlights:
# - Facility: a parking site managed by one facility manager (auth User).
# - ParkingSlot: typed and priced space; 'is_available' is a coarse manual
#   flag, independent of time-based bookings.
# - Vehicle: belongs to a user; a booking references one vehicle/plate.
# - Booking:
#   • status is a closed enum (BookingStatus) driven by services/lifecycle.py
#   • total_cost is derived by the pricing engine, never edited by hand
#   • extended_time accumulates hours added after creation
# - BookingHistory: one row per status change.
# - Payment: one-to-one with Booking; refunds recorded here, never by
#   lowering Booking.total_cost.
# - RateHistory: records slot hourly rate changes.
#
# Notes for developers:
# - Overlap prevention is NOT a DB constraint. It is enforced by
#   DjangoBookingStore.insert_booking_atomic, which locks the slot row inside a transaction before re-checking.
#

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from .exceptions import BookingValidationError


# -------------------------
# Facility
# -------------------------
class Facility(models.Model):
    """
    A parking facility (garage, lot) with a manager.
    """
    name = models.CharField(max_length=100)
    address = models.CharField(max_length=255)
    city = models.CharField(max_length=50, blank=True)
    state = models.CharField(max_length=50, blank=True)
    zip_code = models.CharField(max_length=10, blank=True)
    total_slots = models.PositiveIntegerField(default=0)
    operating_hours = models.CharField(max_length=100, blank=True)
    contact_info = models.CharField(max_length=255, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="managed_facilities",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "facilities"

    def __str__(self):
        return self.name


# -------------------------
# Parking slot
# -------------------------
class ParkingSlot(models.Model):
    """
    A single parking space, typed and priced, belonging to a facility.

    Rules:
    - hourly_rate must be >= 0
    - is_available is toggled manually (maintenance, reserved for staff...)
    """

    class SlotType(models.TextChoices):
        REGULAR = "REGULAR", "Regular"
        VIP = "VIP", "VIP"
        HANDICAPPED = "HANDICAPPED", "Handicapped"
        ELECTRIC_VEHICLE = "ELECTRIC_VEHICLE", "Electric vehicle"

    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name="slots")
    slot_number = models.CharField(max_length=10, unique=True)
    slot_type = models.CharField(max_length=20, choices=SlotType.choices, default=SlotType.REGULAR)
    hourly_rate = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    is_available = models.BooleanField(default=True)
    floor = models.IntegerField(default=1)
    section = models.CharField(max_length=50, blank=True)
    features = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["facility_id", "slot_number"]

    def __str__(self):
        return f"{self.slot_number} ({self.get_slot_type_display()}, ${self.hourly_rate}/h)"

    @property
    def is_electric(self) -> bool:
        return self.slot_type == self.SlotType.ELECTRIC_VEHICLE

    @property
    def is_accessible(self) -> bool:
        return self.slot_type == self.SlotType.HANDICAPPED


# -------------------------
# Vehicle
# -------------------------
class Vehicle(models.Model):
    class VehicleType(models.TextChoices):
        CAR = "CAR", "Car"
        MOTORCYCLE = "MOTORCYCLE", "Motorcycle"
        TRUCK = "TRUCK", "Truck"
        VAN = "VAN", "Van"
        ELECTRIC = "ELECTRIC", "Electric"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="vehicles")
    license_plate = models.CharField(max_length=20)
    vehicle_type = models.CharField(max_length=20, choices=VehicleType.choices, default=VehicleType.CAR)
    make = models.CharField(max_length=50, blank=True)
    model = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=30, blank=True)
    year = models.PositiveSmallIntegerField(null=True, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.license_plate

    def clean(self):
        """
        Normalize the plate and keep a single default vehicle per user.
        """
        self.license_plate = (self.license_plate or "").strip().upper()
        if not self.license_plate:
            raise BookingValidationError("License plate is required.", code="license_plate_required")
        if self.is_default:
            others = Vehicle.objects.filter(user_id=self.user_id, is_default=True)
            if self.pk:
                others = others.exclude(pk=self.pk)
            if others.exists():
                raise BookingValidationError(
                    "This user already has a default vehicle.",
                    code="duplicate_default_vehicle",
                )


# -------------------------
# Booking record
# -------------------------
class BookingStatus(models.TextChoices):
    CONFIRMED = "CONFIRMED", "Confirmed"
    ACTIVE = "ACTIVE", "Active"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    OVERDUE = "OVERDUE", "Overdue"


class Booking(models.Model):
    """
    Reservation of a slot for [start_time, end_time) by a user/vehicle.

    Only CONFIRMED and ACTIVE bookings occupy the slot for overlap purposes.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bookings")
    slot = models.ForeignKey(ParkingSlot, on_delete=models.PROTECT, related_name="bookings")
    vehicle = models.ForeignKey(Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name="bookings")
    vehicle_number = models.CharField(max_length=20)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    total_cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(
        max_length=10,
        choices=BookingStatus.choices,
        default=BookingStatus.CONFIRMED,
        help_text="Booking lifecycle status",
    )
    extended_time = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Cumulative hours added after creation.",
    )
    check_in_time = models.DateTimeField(null=True, blank=True)
    check_out_time = models.DateTimeField(null=True, blank=True)
    cancellation_time = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was cancelled (if applicable).",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_time"]
        indexes = [
            models.Index(fields=["slot", "status", "start_time"], name="booking_slot_status_start"),
        ]

    def __str__(self):
        return f"{self.vehicle_number} → {self.slot.slot_number} {self.start_time:%Y-%m-%d %H:%M}-{self.end_time:%H:%M}"

    @property
    def occupies_slot(self) -> bool:
        return self.status in (BookingStatus.CONFIRMED, BookingStatus.ACTIVE)


# -------------------------
# Booking status log
# -------------------------
class BookingHistory(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="history")
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    previous_status = models.CharField(max_length=10, blank=True)
    new_status = models.CharField(max_length=10)
    changed_at = models.DateTimeField(auto_now_add=True)
    notes = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-changed_at", "-id"]
        verbose_name_plural = "booking history"

    def __str__(self):
        return f"Booking #{self.booking_id}: {self.previous_status or '∅'} → {self.new_status}"

    @property
    def is_status_change(self) -> bool:
        return bool(self.previous_status) and self.previous_status != self.new_status


# -------------------------
# Payment / refund
# -------------------------
class Payment(models.Model):
    class Method(models.TextChoices):
        CREDIT_CARD = "CREDIT_CARD", "Credit card"
        DEBIT_CARD = "DEBIT_CARD", "Debit card"
        DIGITAL_WALLET = "DIGITAL_WALLET", "Digital wallet"
        CASH = "CASH", "Cash"
        BANK_TRANSFER = "BANK_TRANSFER", "Bank transfer"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        FAILED = "FAILED", "Failed"
        REFUNDED = "REFUNDED", "Refunded"
        PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED", "Partially refunded"

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name="payment")
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    method = models.CharField(max_length=20, choices=Method.choices)
    transaction_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_date = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    gateway_response = models.CharField(max_length=500, blank=True)

    def __str__(self):
        return f"Payment for booking #{self.booking_id}: ${self.amount} ({self.status})"

    @property
    def refundable_balance(self) -> Decimal:
        return self.amount - self.refund_amount

    @property
    def is_successful(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.REFUNDED, self.Status.PARTIALLY_REFUNDED)

    def mark_completed(self, transaction_id, when):
        self.status = self.Status.COMPLETED
        self.transaction_id = transaction_id
        self.payment_date = when

    def process_refund(self, amount: Decimal, reason: str = ""):
        """
        Record a refund against this payment.

        Raises:
            BookingValidationError: if the amount is negative or exceeds what
            is left after earlier refunds.
        """
        if amount < 0:
            raise BookingValidationError(
                "Refund amount cannot be negative.",
                code="negative_refund",
                params={"amount": amount},
            )
        if amount > self.refundable_balance:
            raise BookingValidationError(
                "Refund amount exceeds available balance.",
                code="refund_exceeds_balance",
                params={"amount": amount, "balance": self.refundable_balance},
            )
        self.refund_amount += amount
        self.status = self.Status.REFUNDED if self.refund_amount == self.amount else self.Status.PARTIALLY_REFUNDED
        self.gateway_response = reason


# -------------------------
# Slot rate change log
# -------------------------
class RateHistory(models.Model):
    """
    Record of changes to a slot's hourly rate, for auditing/reporting.
    """
    slot = models.ForeignKey(ParkingSlot, on_delete=models.CASCADE, related_name="rate_changes")
    old_rate = models.DecimalField(max_digits=8, decimal_places=2)
    new_rate = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00")), MaxValueValidator(Decimal("9999.99"))],
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-changed_at", "-id"]
        verbose_name_plural = "rate history"
