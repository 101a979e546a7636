"""
Department fulfillment queue and status transitions.

Allowed moves::

    pending ──► paid ──► in_progress ──► completed
                  └──────────────────────►┘
    pending / paid / in_progress ──► cancelled

``pending → paid`` belongs to payment collection (see
:mod:`pos.services.payments`).  Start and complete are department
actions: the update only matches rows whose service category belongs to
the acting department.  A rejected transition is reported as a single
``state_conflict`` without telling apart a missing row, a row already
moved and a row owned by another department.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Case, IntegerField, Value, When

from pos.models import Transaction, TransactionStatus
from pos.services import store
from pos.services.notify import broadcast_queue_refresh
from pos.services.outcomes import FailureKind, Outcome
from pos.services.routing import category_for_department
from pos.services.transactions import RELATED, format_transaction, record_transition

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_STATUSES = (TransactionStatus.PAID, TransactionStatus.IN_PROGRESS)

# target status -> statuses it may be reached from
TRANSITIONS = {
    TransactionStatus.PAID: (TransactionStatus.PENDING,),
    TransactionStatus.IN_PROGRESS: (TransactionStatus.PAID,),
    TransactionStatus.COMPLETED: (TransactionStatus.PAID, TransactionStatus.IN_PROGRESS),
    TransactionStatus.CANCELLED: (TransactionStatus.PENDING, TransactionStatus.PAID, TransactionStatus.IN_PROGRESS),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if a transaction may move from ``current`` to ``new``."""
    return current in TRANSITIONS.get(new, ())


def _unknown_department(department: str) -> Outcome:
    return Outcome.failure(
        FailureKind.VALIDATION, f'Department {department!r} has no fulfillment queue', department=department,
    )


def list_fulfillment_queue(department: str, statuses: Optional[Iterable[str]] = None) -> Outcome:
    category = category_for_department(department)
    if category is None:
        return _unknown_department(department)
    wanted = list(statuses) if statuses else list(DEFAULT_QUEUE_STATUSES)
    invalid = [s for s in wanted if s not in TransactionStatus.values]
    if invalid:
        return Outcome.failure(FailureKind.VALIDATION, 'Unknown status filter', statuses=invalid)
    qs = (
        store.find_transactions(category=category, statuses=wanted)
        .select_related(*RELATED)
        .annotate(queue_rank=Case(
            When(status=TransactionStatus.PAID, then=Value(0)),
            When(status=TransactionStatus.IN_PROGRESS, then=Value(1)),
            default=Value(2),
            output_field=IntegerField(),
        ))
        .order_by('queue_rank', 'updated_at', 'id')
    )
    items = [format_transaction(t) for t in qs]
    return Outcome.success(department=department, items=items, count=len(items))


def _department_transition(transaction_id: int, department: str, operator, target: str, reason: str) -> Outcome:
    category = category_for_department(department)
    if category is None:
        return _unknown_department(department)
    with transaction.atomic():
        previous = None
        # the matching guard is the recorded from-status
        for source in TRANSITIONS[target]:
            if store.update_transaction(transaction_id, {'status': target}, guard_status=source, category=category):
                previous = source
                break
        if previous is None:
            logger.info("%s of transaction %s by %s rejected", target, transaction_id, department)
            return Outcome.failure(
                FailureKind.STATE_CONFLICT,
                f'Service not found, already processed, or not a {department} service',
                transactionId=transaction_id,
            )
        record_transition(transaction_id, previous, target, operator, reason)
        broadcast_queue_refresh([department], reason)
    logger.info("transaction %s moved %s -> %s by %s", transaction_id, previous, target, department)
    return Outcome.success(
        f'Service {target.replace("_", " ")}',
        transactionId=transaction_id,
        status=target,
        department=department,
    )


def start_fulfillment(transaction_id: int, department: str, operator=None) -> Outcome:
    return _department_transition(transaction_id, department, operator, TransactionStatus.IN_PROGRESS, 'started')


def complete_fulfillment(transaction_id: int, department: str, operator=None) -> Outcome:
    return _department_transition(transaction_id, department, operator, TransactionStatus.COMPLETED, 'completed')


def cancel_transaction(transaction_id: int, operator=None, reason: str = '') -> Outcome:
    """Administrative override: any non-terminal row becomes ``cancelled``."""
    with transaction.atomic():
        previous = None
        for source in TRANSITIONS[TransactionStatus.CANCELLED]:
            if store.update_transaction(transaction_id, {'status': TransactionStatus.CANCELLED}, guard_status=source):
                previous = source
                break
        if previous is None:
            return Outcome.failure(
                FailureKind.STATE_CONFLICT, 'Transaction not found or already closed', transactionId=transaction_id,
            )
        record_transition(transaction_id, previous, TransactionStatus.CANCELLED, operator, reason or 'cancelled')
        department = Transaction.objects.filter(pk=transaction_id).values_list('department', flat=True).get()
        broadcast_queue_refresh([department], 'cancelled')
    logger.info("transaction %s cancelled (was %s)", transaction_id, previous)
    return Outcome.success('Transaction cancelled', transactionId=transaction_id, status=TransactionStatus.CANCELLED)
