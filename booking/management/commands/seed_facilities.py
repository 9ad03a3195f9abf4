"""
seed_facilities.py
------------------
Seeds (creates or updates) a demo facility with a manager account and a few
slots of every type. You can run this any time; slots are upserted by slot
number.

Usage:
    python manage.py seed_facilities
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from booking.models import Facility, ParkingSlot

FACILITY = {
    "name": "Downtown Parking",
    "address": "100 Main Street",
    "city": "Springfield",
    "operating_hours": "24/7",
}

SLOTS = [
    {"slot_number": "A-01", "slot_type": ParkingSlot.SlotType.REGULAR, "hourly_rate": Decimal("10.00"), "floor": 1, "section": "A"},
    {"slot_number": "A-02", "slot_type": ParkingSlot.SlotType.REGULAR, "hourly_rate": Decimal("10.00"), "floor": 1, "section": "A"},
    {"slot_number": "A-03", "slot_type": ParkingSlot.SlotType.HANDICAPPED, "hourly_rate": Decimal("8.00"), "floor": 1, "section": "A"},
    {"slot_number": "B-01", "slot_type": ParkingSlot.SlotType.ELECTRIC_VEHICLE, "hourly_rate": Decimal("12.50"), "floor": 1, "section": "B", "features": "22kW charger"},
    {"slot_number": "B-02", "slot_type": ParkingSlot.SlotType.ELECTRIC_VEHICLE, "hourly_rate": Decimal("12.50"), "floor": 1, "section": "B", "features": "22kW charger"},
    {"slot_number": "V-01", "slot_type": ParkingSlot.SlotType.VIP, "hourly_rate": Decimal("25.00"), "floor": 2, "section": "VIP", "features": "Covered"},
]


class Command(BaseCommand):
    help = "Seed or update a demo facility and its parking slots."

    def add_arguments(self, parser):
        parser.add_argument("--manager", default="facility_manager", help="Username of the facility manager.")

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()
        manager, _ = User.objects.get_or_create(
            username=options["manager"],
            defaults={"email": f"{options['manager']}@example.com", "is_staff": True},
        )

        facility, _ = Facility.objects.update_or_create(
            name=FACILITY["name"],
            defaults={**FACILITY, "manager": manager},
        )

        created = 0
        updated = 0
        for item in SLOTS:
            slot, is_created = ParkingSlot.objects.get_or_create(
                slot_number=item["slot_number"],
                defaults={**item, "facility": facility},
            )
            if is_created:
                created += 1
                continue
            changed = False
            for field, value in item.items():
                if getattr(slot, field) != value:
                    setattr(slot, field, value)
                    changed = True
            if slot.facility_id != facility.pk:
                slot.facility = facility
                changed = True
            if changed:
                slot.save()
                updated += 1

        facility.total_slots = facility.slots.count()
        facility.save(update_fields=["total_slots"])

        self.stdout.write(self.style.SUCCESS(f"Seed complete. Created={created}, Updated={updated}"))
