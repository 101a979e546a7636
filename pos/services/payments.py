"""
Payment collection at the cashier.

``collect_payment`` charges every pending line a patient has for the
requested services in one database transaction.  Each line moves
``pending → paid`` through a guarded update; if any of them was paid or
cancelled by someone else in the meantime the whole batch is rolled
back and the caller gets a ``state_conflict`` outcome it can retry.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Q

from pos.models import Patient, Transaction, TransactionStatus
from pos.services import store
from pos.services.audit import log_action
from pos.services.notify import broadcast_queue_refresh
from pos.services.outcomes import FailureKind, Outcome
from pos.services.routing import department_for_category, department_label
from pos.services.transactions import RELATED, format_transaction, money, record_transition

logger = logging.getLogger(__name__)


class _BatchConflict(Exception):
    """Raised inside the payment block to roll it back."""

    def __init__(self, transaction_id: int):
        super().__init__(transaction_id)
        self.transaction_id = transaction_id


def _dedupe(service_ids: Iterable[int]) -> tuple[list[int], list[int]]:
    unique: list[int] = []
    duplicates: list[int] = []
    seen = set()
    for sid in service_ids:
        if sid in seen:
            duplicates.append(sid)
            continue
        seen.add(sid)
        unique.append(sid)
    return unique, duplicates


def _routing_summary(rows: list[Transaction]) -> dict:
    routing: dict = OrderedDict()
    for row in rows:
        routing.setdefault(department_label(row.department), []).append(
            {'name': row.service.name, 'quantity': row.quantity}
        )
    return routing


def _mark_paid(rows: list[Transaction], cashier, patient_id: int, total_amount) -> None:
    """Move every row pending -> paid; any row that already moved aborts the batch."""
    for row in rows:
        changed = store.update_transaction(
            row.pk,
            {'status': TransactionStatus.PAID, 'cashier': cashier if getattr(cashier, 'pk', None) else None},
            guard_status=TransactionStatus.PENDING,
        )
        if not changed:
            raise _BatchConflict(row.pk)
        record_transition(row.pk, TransactionStatus.PENDING, TransactionStatus.PAID, cashier, 'payment collected')
    log_action(user=cashier, action='collect_payment', object_type='patient', object_id=patient_id,
               detail={'transactions': [r.pk for r in rows], 'totalAmount': str(total_amount)})
    broadcast_queue_refresh([r.department for r in rows], 'paid')


def collect_payment(patient_id: int, service_ids: Iterable[int], total_amount, cashier) -> Outcome:
    requested = list(service_ids or [])
    if not requested:
        return Outcome.failure(FailureKind.VALIDATION, 'At least one service is required')
    if total_amount is None or Decimal(total_amount) < 0:
        return Outcome.failure(FailureKind.VALIDATION, 'Total amount must not be negative')

    unique_ids, duplicates = _dedupe(requested)
    rows = list(store.find_transactions(patient_id=patient_id, service_ids=unique_ids).order_by('id'))
    pending = [r for r in rows if r.status == TransactionStatus.PENDING]
    already_processed = [r.service.name for r in rows if r.status != TransactionStatus.PENDING]

    if not pending:
        logger.info("payment for patient %s: nothing pending among services %s", patient_id, unique_ids)
        return Outcome.failure(
            FailureKind.NOTHING_TO_PROCESS,
            'No pending services to process',
            duplicates=duplicates,
            alreadyProcessed=already_processed,
            details={
                'totalRequested': len(requested),
                'duplicatesCount': len(duplicates),
                'alreadyProcessedCount': len(already_processed),
                'pendingCount': 0,
            },
        )

    try:
        store.run_atomic(_mark_paid, pending, cashier, patient_id, total_amount)
    except _BatchConflict as exc:
        logger.warning("payment batch for patient %s rolled back: transaction %s changed concurrently",
                       patient_id, exc.transaction_id)
        return Outcome.failure(
            FailureKind.STATE_CONFLICT,
            'A service was processed by someone else; reload and retry',
            transactionId=exc.transaction_id,
        )

    computed = sum((r.amount * r.quantity for r in pending), Decimal('0'))
    if computed != Decimal(total_amount):
        logger.warning("payment for patient %s: submitted total %s, computed %s", patient_id, total_amount, computed)
    updated = Transaction.objects.select_related(*RELATED).filter(pk__in=[r.pk for r in pending]).order_by('id')
    routing = _routing_summary(pending)
    logger.info("payment for patient %s: %s lines paid, routing %s", patient_id, len(pending), list(routing))

    return Outcome.success(
        f'Payment processed for {len(pending)} service(s)',
        updatedServices=len(pending),
        departmentRouting=routing,
        services=[r.service.name for r in pending],
        transactions=[format_transaction(t) for t in updated],
        warnings={'duplicates': duplicates, 'alreadyProcessed': already_processed},
        totalAmount=money(total_amount),
        computedTotal=money(computed),
    )


def record_sale(patient_id: int, service_id: int, cashier, *, quantity: int = 1, notes: str = '') -> Outcome:
    """Sell a service over the counter: the row starts out ``paid``."""
    if not Patient.objects.filter(pk=patient_id).exists():
        return Outcome.failure(FailureKind.VALIDATION, 'Patient not found', patientId=patient_id)
    svc = store.resolve_service(service_id)
    if svc is None or not svc.is_active:
        return Outcome.failure(FailureKind.VALIDATION, 'Service not found or inactive', serviceId=service_id)
    if quantity < 1:
        return Outcome.failure(FailureKind.VALIDATION, 'Quantity must be at least 1')

    department = department_for_category(svc.category, ad_hoc=True)
    with transaction.atomic():
        transaction_id = store.insert_transaction(
            patient_id=patient_id,
            service_id=svc.id,
            amount=svc.price,
            quantity=quantity,
            status=TransactionStatus.PAID,
            department=department,
            cashier=cashier if getattr(cashier, 'pk', None) else None,
            notes=notes or '',
        )
        record_transition(transaction_id, None, TransactionStatus.PAID, cashier, 'direct sale')
        log_action(user=cashier, action='sale', object_type='transaction', object_id=transaction_id,
                   detail={'serviceId': svc.id, 'amount': str(svc.price), 'quantity': quantity})
        broadcast_queue_refresh([department], 'paid')
    logger.info("sale %s: %s x%s routed to %s", transaction_id, svc.name, quantity, department)
    row = Transaction.objects.select_related(*RELATED).get(pk=transaction_id)
    return Outcome.success('Sale recorded', transaction=format_transaction(row))


def payment_queue(search: Optional[str] = None, category: Optional[str] = None) -> list[dict]:
    """Pending lines grouped per patient, oldest waiting patient first."""
    qs = Transaction.objects.select_related('patient', 'service').filter(status=TransactionStatus.PENDING)
    if search:
        qs = qs.filter(Q(patient__full_name__icontains=search) | Q(patient__hospital_number__icontains=search))
    if category:
        qs = qs.filter(service__category=category)

    groups: dict = OrderedDict()
    for row in qs.order_by('created_at', 'id'):
        entry = groups.get(row.patient_id)
        if entry is None:
            entry = groups[row.patient_id] = {
                'patientId': row.patient_id,
                'hospitalNumber': row.patient.hospital_number,
                'patientName': row.patient.full_name,
                'services': [],
                'serviceIds': [],
                'total': Decimal('0'),
                'count': 0,
                'earliest': row.created_at,
                'latest': row.created_at,
            }
        entry['services'].append(row.service.name)
        entry['serviceIds'].append(row.service_id)
        entry['total'] += row.amount * row.quantity
        entry['count'] += 1
        entry['latest'] = row.created_at

    result = []
    for entry in groups.values():
        entry['total'] = money(entry['total'])
        entry['earliest'] = entry['earliest'].isoformat()
        entry['latest'] = entry['latest'].isoformat()
        result.append(entry)
    return result

