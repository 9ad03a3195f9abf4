from decimal import Decimal

from django.db import models


class FacilityAnalytics(models.Model):
    """
    Daily snapshot of a facility's bookings, written by snapshot_analytics.
    """
    facility = models.ForeignKey("booking.Facility", on_delete=models.CASCADE, related_name="analytics")
    date = models.DateField()
    total_bookings = models.PositiveIntegerField(default=0)
    cancellations = models.PositiveIntegerField(default=0)
    revenue = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    refunds = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    occupancy_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Percent of slot-hours booked.",
    )
    computed_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["facility_id", "-date"]
        constraints = [
            models.UniqueConstraint(fields=["facility", "date"], name="uniq_facility_analytics_day"),
        ]
        verbose_name_plural = "facility analytics"

    def __str__(self):
        return f"{self.facility_id} {self.date}: {self.total_bookings} bookings"
