"""
Merge legacy duplicate prescriptions.

Rows written before same-day de-duplication existed may hold several
pending prescribed lines for one patient, service and day.  Each such
group is folded into its oldest row (quantities summed) and the other
rows are deleted.  Prescribed rows without a ``prescription_date`` get
the local date of ``created_at``.
"""
import logging
from collections import OrderedDict

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from pos.models import Transaction, TransactionStatus
from pos.services.transactions import record_transition

logger = logging.getLogger(__name__)


def _day(row):
    return row.prescription_date or timezone.localdate(row.created_at)


class Command(BaseCommand):
    help = "Fold duplicate pending prescriptions per patient/service/day into one row and backfill prescription dates."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing")

    def handle(self, *args, **opts):
        dry_run = opts["dry_run"]
        rows = (
            Transaction.objects
            .filter(status=TransactionStatus.PENDING, prescribed_by__isnull=False)
            .order_by("id")
        )
        groups = OrderedDict()
        for row in rows:
            groups.setdefault((row.patient_id, row.service_id, _day(row)), []).append(row)

        merged = deleted = 0
        with transaction.atomic():
            for (patient_id, service_id, day), members in groups.items():
                if len(members) < 2:
                    continue
                keeper, extras = members[0], members[1:]
                quantity = sum(m.quantity for m in members)
                self.stdout.write(
                    f"patient {patient_id} service {service_id} {day}: "
                    f"{len(members)} rows -> #{keeper.pk} quantity {quantity}"
                )
                merged += 1
                deleted += len(extras)
                if dry_run:
                    continue
                Transaction.objects.filter(pk__in=[m.pk for m in extras]).delete()
                Transaction.objects.filter(pk=keeper.pk).update(
                    quantity=quantity, prescription_date=day, updated_at=timezone.now(),
                )
                record_transition(keeper.pk, TransactionStatus.PENDING, TransactionStatus.PENDING,
                                  reason=f"merged {len(extras)} duplicate(s)")

            backfilled = 0
            for row in Transaction.objects.filter(prescribed_by__isnull=False, prescription_date__isnull=True):
                backfilled += 1
                if not dry_run:
                    Transaction.objects.filter(pk=row.pk).update(prescription_date=_day(row))

        logger.info("duplicate prescriptions: %s groups merged, %s rows deleted, %s dates backfilled",
                    merged, deleted, backfilled)
        prefix = "[dry-run] " if dry_run else ""
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}{merged} groups merged, {deleted} rows deleted, {backfilled} dates backfilled"
        ))
