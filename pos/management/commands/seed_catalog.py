from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from pos.models import HospitalNumberSeries, Service
from pos.services.catalog import DEFAULT_SERVICES
from pos.services.numbering import highest_issued


class Command(BaseCommand):
    help = "Load the default service catalog and the hospital number series (idempotent)."

    @transaction.atomic
    def handle(self, *args, **opts):
        created = 0
        for name, category, price in DEFAULT_SERVICES:
            _, was_created = Service.objects.get_or_create(
                name=name, category=category, defaults={"price": price, "is_active": True},
            )
            created += int(was_created)
        self.stdout.write(self.style.SUCCESS(f"services: {created} created, {len(DEFAULT_SERVICES) - created} existing"))

        year = timezone.localdate().year
        series, was_created = HospitalNumberSeries.objects.get_or_create(
            id=1,
            defaults={
                "prefix": settings.HOSPITAL_NUMBER_PREFIX,
                "padding": settings.HOSPITAL_NUMBER_PADDING,
                "year": year,
                "counter": highest_issued(settings.HOSPITAL_NUMBER_PREFIX, year) + 1,
            },
        )
        state = "created" if was_created else "existing"
        self.stdout.write(self.style.SUCCESS(f"numbering series {state}: {series}"))
