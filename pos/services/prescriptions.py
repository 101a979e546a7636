"""
Prescription ledger.

A doctor prescribes a batch of services for one patient.  Each line is
handled on its own: an unknown or inactive service is logged and
skipped without affecting the other lines.  Repeating a service for the
same patient on the same day raises the quantity of the pending row
instead of adding a second one.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

import bleach
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from pos.models import Patient, Transaction, TransactionStatus
from pos.services import store
from pos.services.audit import log_action
from pos.services.outcomes import FailureKind, Outcome
from pos.services.routing import department_for_category
from pos.services.transactions import RELATED, format_transaction, money, record_transition

logger = logging.getLogger(__name__)

LINE_ATTEMPTS = 3


def _record_line(patient_id: int, svc: store.ServiceInfo, department: str, actor, today: date,
                 diagnosis: str) -> Optional[tuple[int, int, bool]]:
    """Bump the pending row for today or insert one.

    Returns ``(transaction_id, quantity, created)``, or None if the row
    kept changing under us.
    """
    for _ in range(LINE_ATTEMPTS):
        existing = (
            store.find_transactions(
                patient_id=patient_id, service_id=svc.id,
                statuses=[TransactionStatus.PENDING], prescription_date=today,
            )
            .order_by('id')
            .first()
        )
        if existing is not None:
            bumped = store.update_transaction(
                existing.pk, {'quantity': F('quantity') + 1}, guard_status=TransactionStatus.PENDING,
            )
            if bumped:
                quantity = Transaction.objects.values_list('quantity', flat=True).get(pk=existing.pk)
                logger.info("prescription %s for %s bumped to quantity %s", existing.pk, svc.name, quantity)
                return existing.pk, quantity, False
            # Paid or cancelled between the read and the update.
            continue
        try:
            with transaction.atomic():
                transaction_id = store.insert_transaction(
                    patient_id=patient_id,
                    service_id=svc.id,
                    amount=svc.price,
                    quantity=1,
                    status=TransactionStatus.PENDING,
                    department=department,
                    prescribed_by=actor if getattr(actor, 'pk', None) else None,
                    prescription_date=today,
                    diagnosis=diagnosis,
                )
                record_transition(transaction_id, None, TransactionStatus.PENDING, actor, 'prescribed')
        except IntegrityError:
            # Another request inserted today's pending row first; merge into it.
            logger.info("concurrent prescription of %s for patient %s, retrying as bump", svc.name, patient_id)
            continue
        logger.info("prescription %s created for %s (%s)", transaction_id, svc.name, department)
        return transaction_id, 1, True
    return None


def prescribe(patient_id: int, actor, service_ids: Iterable[int], diagnosis: str = '') -> Outcome:
    ids = list(service_ids or [])
    if not ids:
        return Outcome.failure(FailureKind.VALIDATION, 'At least one service is required')
    if not Patient.objects.filter(pk=patient_id).exists():
        return Outcome.failure(FailureKind.VALIDATION, 'Patient not found', patientId=patient_id)

    diagnosis = bleach.clean((diagnosis or '').strip(), tags=set(), strip=True)
    today = timezone.localdate()
    lines: list[dict] = []
    skipped: list[dict] = []

    for service_id in ids:
        svc = store.resolve_service(service_id)
        if svc is None or not svc.is_active:
            reason = 'not found' if svc is None else 'inactive'
            logger.warning("prescription line skipped: service %s %s", service_id, reason)
            skipped.append({'serviceId': service_id, 'reason': reason})
            continue
        department = department_for_category(svc.category)
        recorded = _record_line(patient_id, svc, department, actor, today, diagnosis)
        if recorded is None:
            logger.warning("prescription line skipped: service %s kept changing concurrently", service_id)
            skipped.append({'serviceId': service_id, 'reason': 'concurrent update'})
            continue
        transaction_id, quantity, created = recorded
        lines.append({
            'id': transaction_id,
            'serviceName': svc.name,
            'serviceCategory': svc.category,
            'amount': money(svc.price),
            'department': department,
            'quantity': quantity,
            'created': created,
        })

    log_action(user=actor, action='prescribe', object_type='patient', object_id=patient_id,
               detail={'transactions': [line['id'] for line in lines], 'skipped': skipped})
    logger.info("prescribed %s of %s services for patient %s", len(lines), len(ids), patient_id)
    return Outcome.success(
        'Services prescribed successfully',
        transactions=lines,
        totalServices=len(lines),
        skipped=skipped,
    )


def list_pending_prescriptions() -> list[dict]:
    """Prescribed lines still waiting at the cashier, oldest first."""
    qs = (
        Transaction.objects.select_related(*RELATED)
        .filter(status=TransactionStatus.PENDING, prescribed_by__isnull=False)
        .order_by('created_at', 'id')
    )
    return [format_transaction(t) for t in qs]
