"""
Service level tests for prescribing, payment collection and department
fulfillment.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from pos.models import Department, Service, ServiceCategory, Transaction, TransactionStatus, TransactionTransition
from pos.services import store
from pos.services.fulfillment import (
    can_transition,
    cancel_transaction,
    complete_fulfillment,
    list_fulfillment_queue,
    start_fulfillment,
)
from pos.services.outcomes import FailureKind
from pos.services.payments import collect_payment, payment_queue, record_sale
from pos.services.prescriptions import list_pending_prescriptions, prescribe
from pos.services.routing import category_for_department, department_for_category

pytestmark = pytest.mark.django_db


def _paid_row(patient, service, **extra):
    return Transaction.objects.create(
        patient=patient, service=service, amount=service.price, status=TransactionStatus.PAID,
        department=department_for_category(service.category), **extra,
    )


# ---------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------
def test_category_routing():
    assert department_for_category(ServiceCategory.LABORATORY) == Department.LAB
    assert department_for_category(ServiceCategory.PHARMACY) == Department.PHARMACY
    assert department_for_category(ServiceCategory.RADIOLOGY) == Department.RADIOLOGY
    assert department_for_category(ServiceCategory.MEDICAL) == Department.CASHIER
    assert department_for_category(ServiceCategory.MEDICAL, ad_hoc=True) == Department.DOCTOR
    assert department_for_category(ServiceCategory.OTHER, ad_hoc=True) == Department.CASHIER
    assert category_for_department('lab') == ServiceCategory.LABORATORY
    assert category_for_department('doctor') is None
    assert category_for_department('nowhere') is None


def test_transition_table():
    assert can_transition('pending', 'paid')
    assert can_transition('paid', 'completed')
    assert not can_transition('completed', 'in_progress')
    assert not can_transition('cancelled', 'pending')
    assert not can_transition('pending', 'in_progress')


# ---------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------
def test_prescribe_routes_each_line(patient, doctor, lab_test, paracetamol):
    outcome = prescribe(patient.id, doctor, [lab_test.id, paracetamol.id], 'fever')
    assert outcome.ok
    assert outcome.data['totalServices'] == 2
    by_name = {line['serviceName']: line for line in outcome.data['transactions']}
    assert by_name['LabTest']['department'] == 'lab'
    assert by_name['LabTest']['amount'] == '3000.00'
    assert by_name['Paracetamol']['department'] == 'pharmacy'
    rows = Transaction.objects.filter(patient=patient)
    assert rows.count() == 2
    assert set(rows.values_list('status', flat=True)) == {'pending'}
    assert all(r.prescribed_by_id == doctor.id for r in rows)
    assert all(r.prescription_date == timezone.localdate() for r in rows)


def test_repeated_prescription_raises_quantity(patient, doctor, lab_test):
    for _ in range(3):
        outcome = prescribe(patient.id, doctor, [lab_test.id])
        assert outcome.ok
    rows = Transaction.objects.filter(patient=patient, service=lab_test)
    assert rows.count() == 1
    assert rows.get().quantity == 3
    assert outcome.data['transactions'][0]['created'] is False


def test_duplicate_ids_in_one_batch_merge(patient, doctor, lab_test):
    outcome = prescribe(patient.id, doctor, [lab_test.id, lab_test.id])
    assert outcome.ok
    assert Transaction.objects.filter(patient=patient).count() == 1
    assert Transaction.objects.get(patient=patient).quantity == 2


def test_paid_row_is_not_bumped(patient, doctor, cashier, lab_test):
    prescribe(patient.id, doctor, [lab_test.id])
    collect_payment(patient.id, [lab_test.id], Decimal('3000'), cashier)
    prescribe(patient.id, doctor, [lab_test.id])
    rows = Transaction.objects.filter(patient=patient).order_by('id')
    assert [(r.status, r.quantity) for r in rows] == [('paid', 1), ('pending', 1)]


def test_prescribe_validation(patient, doctor, lab_test):
    empty = prescribe(patient.id, doctor, [])
    assert not empty.ok and empty.kind == FailureKind.VALIDATION
    missing = prescribe(999999, doctor, [lab_test.id])
    assert not missing.ok and missing.kind == FailureKind.VALIDATION
    assert Transaction.objects.count() == 0


def test_unknown_and_inactive_services_are_skipped(patient, doctor, lab_test):
    retired = Service.objects.create(name='Old', category=ServiceCategory.OTHER, price=Decimal('1.00'), is_active=False)
    outcome = prescribe(patient.id, doctor, [999999, retired.id, lab_test.id])
    assert outcome.ok
    assert outcome.data['totalServices'] == 1
    assert {s['reason'] for s in outcome.data['skipped']} == {'not found', 'inactive'}


def test_amount_is_a_price_snapshot(patient, doctor, lab_test):
    prescribe(patient.id, doctor, [lab_test.id])
    Service.objects.filter(pk=lab_test.pk).update(price=Decimal('9999.00'))
    prescribe(patient.id, doctor, [lab_test.id])
    row = Transaction.objects.get(patient=patient)
    assert row.amount == Decimal('3000.00')
    assert row.quantity == 2


def test_pending_prescriptions_oldest_first(patient, doctor, cashier, lab_test, paracetamol):
    prescribe(patient.id, doctor, [lab_test.id])
    prescribe(patient.id, doctor, [paracetamol.id])
    record_sale(patient.id, lab_test.id, cashier)
    items = list_pending_prescriptions()
    assert [i['serviceName'] for i in items] == ['LabTest', 'Paracetamol']


# ---------------------------------------------------------------------
# Payment collection
# ---------------------------------------------------------------------
def test_lab_and_pharmacy_scenario(patient, doctor, cashier, lab_user, lab_test, paracetamol):
    prescribe(patient.id, doctor, [lab_test.id, paracetamol.id])

    paid = collect_payment(patient.id, [lab_test.id, paracetamol.id], Decimal('3200.00'), cashier)
    assert paid.ok
    assert paid.data['updatedServices'] == 2
    assert paid.data['computedTotal'] == '3200.00'
    assert paid.data['departmentRouting'] == {
        'Laboratory': [{'name': 'LabTest', 'quantity': 1}],
        'Pharmacy': [{'name': 'Paracetamol', 'quantity': 1}],
    }
    assert set(Transaction.objects.values_list('cashier_id', flat=True)) == {cashier.id}

    lab_queue = list_fulfillment_queue('lab')
    assert [i['serviceName'] for i in lab_queue.data['items']] == ['LabTest']
    lab_row = Transaction.objects.get(service=lab_test)
    pharmacy_row = Transaction.objects.get(service=paracetamol)

    # Pharmacy cannot touch the lab line and vice versa.
    assert start_fulfillment(lab_row.id, 'pharmacy').kind == FailureKind.STATE_CONFLICT
    assert complete_fulfillment(pharmacy_row.id, 'lab').kind == FailureKind.STATE_CONFLICT

    assert start_fulfillment(lab_row.id, 'lab', lab_user).ok
    assert complete_fulfillment(lab_row.id, 'lab', lab_user).ok
    assert complete_fulfillment(pharmacy_row.id, 'pharmacy').ok
    assert set(Transaction.objects.values_list('status', flat=True)) == {'completed'}
    assert list_fulfillment_queue('lab').data['items'] == []

    history = list(TransactionTransition.objects.filter(transaction=lab_row).order_by('id')
                   .values_list('from_status', 'to_status'))
    assert history == [(None, 'pending'), ('pending', 'paid'), ('paid', 'in_progress'), ('in_progress', 'completed')]


def test_duplicate_service_ids_are_reported(patient, doctor, cashier, lab_test):
    prescribe(patient.id, doctor, [lab_test.id])
    outcome = collect_payment(patient.id, [lab_test.id, lab_test.id], Decimal('3000.00'), cashier)
    assert outcome.ok
    assert outcome.data['updatedServices'] == 1
    assert outcome.data['warnings']['duplicates'] == [lab_test.id]


def test_paid_line_cannot_be_paid_twice(patient, doctor, cashier, lab_test, paracetamol):
    prescribe(patient.id, doctor, [lab_test.id])
    assert collect_payment(patient.id, [lab_test.id], Decimal('3000.00'), cashier).ok

    again = collect_payment(patient.id, [lab_test.id], Decimal('3000.00'), cashier)
    assert not again.ok
    assert again.kind == FailureKind.NOTHING_TO_PROCESS
    assert again.data['alreadyProcessed'] == ['LabTest']
    assert again.data['details']['pendingCount'] == 0

    prescribe(patient.id, doctor, [paracetamol.id])
    mixed = collect_payment(patient.id, [lab_test.id, paracetamol.id], Decimal('200.00'), cashier)
    assert mixed.ok
    assert mixed.data['updatedServices'] == 1
    assert mixed.data['warnings']['alreadyProcessed'] == ['LabTest']


def test_quantity_counts_in_computed_total(patient, doctor, cashier, paracetamol):
    prescribe(patient.id, doctor, [paracetamol.id, paracetamol.id, paracetamol.id])
    outcome = collect_payment(patient.id, [paracetamol.id], Decimal('500.00'), cashier)
    assert outcome.ok
    assert outcome.data['computedTotal'] == '600.00'
    assert outcome.data['totalAmount'] == '500.00'
    assert outcome.data['departmentRouting'] == {'Pharmacy': [{'name': 'Paracetamol', 'quantity': 3}]}


def test_lost_race_rolls_back_the_whole_batch(monkeypatch, patient, doctor, cashier, lab_test, paracetamol):
    prescribe(patient.id, doctor, [lab_test.id, paracetamol.id])
    real_update = store.update_transaction
    calls = []

    def racing_update(transaction_id, fields, **kwargs):
        calls.append(transaction_id)
        if len(calls) == 2:
            # Another cashier pays this line first.
            Transaction.objects.filter(pk=transaction_id).update(status=TransactionStatus.PAID)
        return real_update(transaction_id, fields, **kwargs)

    monkeypatch.setattr(store, 'update_transaction', racing_update)
    outcome = collect_payment(patient.id, [lab_test.id, paracetamol.id], Decimal('3200.00'), cashier)

    assert not outcome.ok
    assert outcome.kind == FailureKind.STATE_CONFLICT
    assert set(Transaction.objects.values_list('status', flat=True)) == {'pending'}
    assert not TransactionTransition.objects.filter(to_status='paid').exists()


def test_negative_total_is_rejected(patient, doctor, cashier, lab_test):
    prescribe(patient.id, doctor, [lab_test.id])
    outcome = collect_payment(patient.id, [lab_test.id], Decimal('-1'), cashier)
    assert outcome.kind == FailureKind.VALIDATION
    assert Transaction.objects.get().status == 'pending'


# ---------------------------------------------------------------------
# Department queue
# ---------------------------------------------------------------------
def test_queue_orders_paid_before_in_progress(patient, lab_test, paracetamol):
    now = timezone.now()
    first = _paid_row(patient, lab_test)
    second = _paid_row(patient, lab_test)
    started = _paid_row(patient, lab_test)
    _paid_row(patient, paracetamol)
    Transaction.objects.filter(pk=started.pk).update(status=TransactionStatus.IN_PROGRESS,
                                                     updated_at=now - timedelta(hours=2))
    Transaction.objects.filter(pk=first.pk).update(updated_at=now - timedelta(hours=1))
    Transaction.objects.filter(pk=second.pk).update(updated_at=now)

    outcome = list_fulfillment_queue('lab')
    assert outcome.ok
    assert [i['id'] for i in outcome.data['items']] == [first.id, second.id, started.id]


def test_queue_status_filter_and_unknown_department(patient, lab_test):
    row = _paid_row(patient, lab_test)
    start_fulfillment(row.id, 'lab')
    assert list_fulfillment_queue('lab', ['paid']).data['items'] == []
    assert list_fulfillment_queue('lab', ['in_progress']).data['count'] == 1
    assert list_fulfillment_queue('doctor').kind == FailureKind.VALIDATION
    assert list_fulfillment_queue('lab', ['shipped']).kind == FailureKind.VALIDATION


def test_status_only_moves_forward(patient, lab_test):
    row = Transaction.objects.create(patient=patient, service=lab_test, amount=lab_test.price,
                                     department=Department.LAB)
    # Unpaid work cannot be started or completed.
    assert start_fulfillment(row.id, 'lab').kind == FailureKind.STATE_CONFLICT
    assert complete_fulfillment(row.id, 'lab').kind == FailureKind.STATE_CONFLICT

    Transaction.objects.filter(pk=row.pk).update(status=TransactionStatus.PAID)
    assert complete_fulfillment(row.id, 'lab').ok
    assert start_fulfillment(row.id, 'lab').kind == FailureKind.STATE_CONFLICT
    assert cancel_transaction(row.id).kind == FailureKind.STATE_CONFLICT
    assert Transaction.objects.get(pk=row.pk).status == 'completed'


def test_missing_transaction_is_a_conflict():
    assert start_fulfillment(424242, 'lab').kind == FailureKind.STATE_CONFLICT


def test_cancel_from_pending(patient, doctor, cashier, lab_test):
    prescribe(patient.id, doctor, [lab_test.id])
    row = Transaction.objects.get()
    outcome = cancel_transaction(row.id, reason='patient left')
    assert outcome.ok
    assert Transaction.objects.get().status == 'cancelled'
    assert collect_payment(patient.id, [lab_test.id], Decimal('3000'), cashier).kind == FailureKind.NOTHING_TO_PROCESS
    assert cancel_transaction(row.id).kind == FailureKind.STATE_CONFLICT


# ---------------------------------------------------------------------
# Direct sale and cashier queue
# ---------------------------------------------------------------------
def test_direct_sale_is_paid_and_routed(patient, cashier, lab_test):
    consult = Service.objects.create(name='Consultation', category=ServiceCategory.MEDICAL, price=Decimal('5000'))
    outcome = record_sale(patient.id, consult.id, cashier)
    assert outcome.ok
    sale = outcome.data['transaction']
    assert sale['status'] == 'paid'
    assert sale['department'] == 'doctor'
    assert sale['amount'] == '5000.00'
    assert sale['prescribedBy'] is None

    lab_sale = record_sale(patient.id, lab_test.id, cashier, quantity=2)
    assert lab_sale.data['transaction']['lineTotal'] == '6000.00'
    assert list_fulfillment_queue('lab').data['count'] == 1


def test_sale_validation(patient, cashier):
    assert record_sale(patient.id, 999999, cashier).kind == FailureKind.VALIDATION
    assert record_sale(999999, 1, cashier).kind == FailureKind.VALIDATION


def test_payment_queue_groups_by_patient(patient, doctor, lab_test, paracetamol):
    prescribe(patient.id, doctor, [lab_test.id, paracetamol.id, paracetamol.id])
    queue = payment_queue()
    assert len(queue) == 1
    entry = queue[0]
    assert entry['patientId'] == patient.id
    assert entry['count'] == 2
    assert entry['total'] == '3400.00'
    assert sorted(entry['serviceIds']) == sorted([lab_test.id, paracetamol.id])

    assert payment_queue(search='obi')[0]['patientId'] == patient.id
    assert payment_queue(search='nobody') == []
    assert payment_queue(category=ServiceCategory.PHARMACY)[0]['total'] == '400.00'


def test_payment_pushes_queue_refresh(django_capture_on_commit_callbacks, monkeypatch,
                                      patient, doctor, cashier, lab_test, paracetamol):
    from pos.services import notify

    sent = []
    monkeypatch.setattr(notify, '_send_refresh', lambda departments, reason: sent.append((departments, reason)))
    prescribe(patient.id, doctor, [lab_test.id, paracetamol.id])
    with django_capture_on_commit_callbacks(execute=True):
        collect_payment(patient.id, [lab_test.id, paracetamol.id], Decimal('3200.00'), cashier)
    assert sent == [(['lab', 'pharmacy'], 'paid')]
    assert notify.queue_group('lab') == 'queue.lab'


def test_dead_channel_layer_does_not_fail_a_committed_payment(django_capture_on_commit_callbacks, monkeypatch,
                                                             patient, doctor, cashier, lab_test):
    from pos.services import notify

    def dead_layer():
        raise ConnectionError('redis down')

    monkeypatch.setattr(notify, 'get_channel_layer', dead_layer)
    prescribe(patient.id, doctor, [lab_test.id])
    with django_capture_on_commit_callbacks(execute=True):
        outcome = collect_payment(patient.id, [lab_test.id], Decimal('3000.00'), cashier)
    assert outcome.ok
    assert Transaction.objects.get().status == 'paid'


def test_history_names_the_status_the_row_actually_left(monkeypatch, patient, lab_test):
    row = _paid_row(patient, lab_test)
    real_update = store.update_transaction

    def racing_update(transaction_id, fields, **kwargs):
        if kwargs.get('guard_status') == TransactionStatus.PAID:
            # A colleague starts the work first.
            Transaction.objects.filter(pk=transaction_id).update(status=TransactionStatus.IN_PROGRESS)
        return real_update(transaction_id, fields, **kwargs)

    monkeypatch.setattr(store, 'update_transaction', racing_update)
    assert complete_fulfillment(row.id, 'lab').ok
    transition = TransactionTransition.objects.get(transaction=row)
    assert (transition.from_status, transition.to_status) == ('in_progress', 'completed')
