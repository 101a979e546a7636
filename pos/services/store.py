"""
Data access for transaction rows.

Every status change in the workflow is a conditional ``UPDATE`` whose
``WHERE`` clause carries the status the row must currently have (and,
for department actions, the service category it must belong to).  The
affected row count is the only concurrency signal: zero means the row
was missing, already moved, or owned by another department.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Union

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from pos.models import Service, Transaction

StatusGuard = Union[str, Iterable[str], None]


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    category: str
    price: Decimal
    is_active: bool


def resolve_service(service_id: int) -> Optional[ServiceInfo]:
    svc = Service.objects.filter(pk=service_id).only('id', 'name', 'category', 'price', 'is_active').first()
    if svc is None:
        return None
    return ServiceInfo(id=svc.id, name=svc.name, category=svc.category, price=svc.price, is_active=svc.is_active)


def find_transactions(
    *,
    patient_id: Optional[int] = None,
    service_id: Optional[int] = None,
    service_ids: Optional[Iterable[int]] = None,
    statuses: Optional[Iterable[str]] = None,
    department: Optional[str] = None,
    category: Optional[str] = None,
    prescription_date: Optional[date] = None,
) -> QuerySet:
    qs = Transaction.objects.select_related('service', 'patient')
    if patient_id is not None:
        qs = qs.filter(patient_id=patient_id)
    if service_id is not None:
        qs = qs.filter(service_id=service_id)
    if service_ids is not None:
        qs = qs.filter(service_id__in=list(service_ids))
    if statuses is not None:
        qs = qs.filter(status__in=list(statuses))
    if department is not None:
        qs = qs.filter(department=department)
    if category is not None:
        qs = qs.filter(service__category=category)
    if prescription_date is not None:
        qs = qs.filter(prescription_date=prescription_date)
    return qs


def insert_transaction(**fields: Any) -> int:
    return Transaction.objects.create(**fields).pk


def update_transaction(
    transaction_id: int,
    fields: dict,
    *,
    guard_status: StatusGuard = None,
    category: Optional[str] = None,
) -> int:
    """Apply ``fields`` to one row if it still satisfies the guard.

    Returns the number of rows changed (0 or 1).
    """
    qs = Transaction.objects.filter(pk=transaction_id)
    if isinstance(guard_status, str):
        qs = qs.filter(status=guard_status)
    elif guard_status is not None:
        qs = qs.filter(status__in=list(guard_status))
    if category is not None:
        qs = qs.filter(service__category=category)
    return qs.update(updated_at=timezone.now(), **fields)


def run_atomic(callback: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    with transaction.atomic():
        return callback(*args, **kwargs)
