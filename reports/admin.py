from django.contrib import admin
from .models import FacilityAnalytics


@admin.register(FacilityAnalytics)
class FacilityAnalyticsAdmin(admin.ModelAdmin):
    list_display = ("facility", "date", "total_bookings", "cancellations", "revenue", "refunds", "occupancy_rate")
    list_filter = ("facility",)
    date_hierarchy = "date"
