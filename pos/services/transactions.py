from decimal import Decimal
from typing import Optional

from pos.models import Transaction, TransactionTransition

RELATED = ('patient', 'service', 'prescribed_by', 'cashier')

Q2 = Decimal('0.01')


def money(value) -> str:
    return str(Decimal(value or 0).quantize(Q2))


def _user_name(user) -> Optional[str]:
    if user is None:
        return None
    return user.get_full_name() or user.username


def format_transaction(t: Transaction) -> dict:
    return {
        'id': t.id,
        'patientId': t.patient_id,
        'hospitalNumber': t.patient.hospital_number,
        'patientName': t.patient.full_name,
        'serviceId': t.service_id,
        'serviceName': t.service.name,
        'serviceCategory': t.service.category,
        'amount': money(t.amount),
        'quantity': t.quantity,
        'lineTotal': money(t.amount * t.quantity),
        'status': t.status,
        'department': t.department,
        'prescribedBy': _user_name(t.prescribed_by),
        'cashier': _user_name(t.cashier),
        'prescriptionDate': t.prescription_date.isoformat() if t.prescription_date else None,
        'diagnosis': t.diagnosis,
        'notes': t.notes,
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'updatedAt': t.updated_at.isoformat() if t.updated_at else None,
    }


def record_transition(transaction_id: int, from_status: Optional[str], to_status: str, operator=None, reason: str = '') -> TransactionTransition:
    return TransactionTransition.objects.create(
        transaction_id=transaction_id,
        from_status=from_status,
        to_status=to_status,
        operator=operator if getattr(operator, 'pk', None) else None,
        reason=reason[:255],
    )


def list_transactions(*, status=None, department=None, patient_id=None, limit=200) -> list[dict]:
    qs = Transaction.objects.select_related(*RELATED)
    if status:
        qs = qs.filter(status=status)
    if department:
        qs = qs.filter(department=department)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    return [format_transaction(t) for t in qs.order_by('-created_at', '-id')[:limit]]


def transition_history(transaction_id: int) -> list[dict]:
    rows = TransactionTransition.objects.filter(transaction_id=transaction_id).select_related('operator').order_by('timestamp', 'id')
    return [
        {
            'from': t.from_status,
            'to': t.to_status,
            'operator': t.operator.username if t.operator else '',
            'timestamp': t.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            'reason': t.reason,
        }
        for t in rows
    ]
