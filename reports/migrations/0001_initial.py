from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("booking", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="FacilityAnalytics",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("total_bookings", models.PositiveIntegerField(default=0)),
                ("cancellations", models.PositiveIntegerField(default=0)),
                ("revenue", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("refunds", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "occupancy_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Percent of slot-hours booked.",
                        max_digits=5,
                    ),
                ),
                ("computed_at", models.DateTimeField(auto_now=True)),
                (
                    "facility",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="analytics",
                        to="booking.facility",
                    ),
                ),
            ],
            options={
                "ordering": ["facility_id", "-date"],
                "verbose_name_plural": "facility analytics",
                "constraints": [
                    models.UniqueConstraint(fields=("facility", "date"), name="uniq_facility_analytics_day"),
                ],
            },
        ),
    ]
