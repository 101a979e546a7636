"""
Database models for the hospital point-of-sale backend.

The central entity is :class:`Transaction`: one billable service line
for one patient.  Doctors create transactions by prescribing, cashiers
move them to ``paid`` and the clinical departments (laboratory,
pharmacy, radiology) advance them to ``completed``.  Patients, services
and staff users are the reference data those rows point at.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q


class Role(models.TextChoices):
    ADMIN = 'admin', 'Administrator'
    CASHIER = 'cashier', 'Cashier'
    DOCTOR = 'doctor', 'Doctor'
    LAB = 'lab', 'Laboratory'
    PHARMACY = 'pharmacy', 'Pharmacy'
    RADIOLOGY = 'radiology', 'Radiology'


class ServiceCategory(models.TextChoices):
    MEDICAL = 'Medical', 'Medical'
    LABORATORY = 'Laboratory', 'Laboratory'
    PHARMACY = 'Pharmacy', 'Pharmacy'
    RADIOLOGY = 'Radiology', 'Radiology'
    OTHER = 'Other', 'Other'


class Department(models.TextChoices):
    LAB = 'lab', 'Laboratory'
    PHARMACY = 'pharmacy', 'Pharmacy'
    RADIOLOGY = 'radiology', 'Radiology'
    DOCTOR = 'doctor', 'Doctor'
    CASHIER = 'cashier', 'Cashier'


class TransactionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class User(AbstractUser):
    """Staff account.  The role decides which screens and actions are allowed."""
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.CASHIER, db_index=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class HospitalNumberSeries(models.Model):
    """Single-row counter backing hospital number generation.

    ``counter`` holds the value the next registered patient receives.
    It restarts at 1 whenever ``year`` no longer matches the calendar
    year at generation time.
    """
    prefix = models.CharField(max_length=10, default='HOS')
    year = models.PositiveIntegerField()
    counter = models.PositiveIntegerField(default=1)
    padding = models.PositiveSmallIntegerField(default=4)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.prefix}{self.year} next={self.counter}"


class Patient(models.Model):
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
    ]
    TYPE_CHOICES = [
        ('new', 'New'),
        ('revisit', 'Revisit'),
    ]
    hospital_number = models.CharField(max_length=32, unique=True)
    full_name = models.CharField(max_length=255, db_index=True)
    age = models.PositiveIntegerField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    contact = models.CharField(max_length=64, blank=True)
    patient_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='new')
    is_active = models.BooleanField(default=True)
    registered_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(age__gt=0) & Q(age__lt=150), name='patient_age_range'),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.hospital_number})"


class Service(models.Model):
    """A billable catalog item.  The category decides which department fulfils it."""
    name = models.CharField(max_length=255, db_index=True)
    category = models.CharField(max_length=32, choices=ServiceCategory.choices, db_index=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(price__gte=0), name='service_price_non_negative'),
        ]

    def __str__(self) -> str:
        return f"{self.name} [{self.category}]"


class Transaction(models.Model):
    """One billable service instance for one patient.

    ``amount`` is the unit price captured when the row was created and
    is never recalculated.  Repeated same-day prescriptions of the same
    service raise ``quantity`` on the pending row instead of adding
    rows, which the partial unique constraint below backs up at the
    database level.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='transactions')
    service = models.ForeignKey(Service, on_delete=models.PROTECT, related_name='transactions')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    status = models.CharField(
        max_length=16, choices=TransactionStatus.choices, default=TransactionStatus.PENDING, db_index=True
    )
    department = models.CharField(max_length=16, choices=Department.choices, db_index=True)
    prescribed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions'
    )
    cashier = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='collections'
    )
    prescription_date = models.DateField(null=True, blank=True)
    diagnosis = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    # Guarded updates go through QuerySet.update(), which bypasses
    # auto_now; callers set this field explicitly.
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(amount__gte=0), name='transaction_amount_non_negative'),
            models.CheckConstraint(condition=Q(quantity__gte=1), name='transaction_quantity_positive'),
            models.UniqueConstraint(
                fields=['patient', 'service', 'prescription_date'],
                condition=Q(status='pending'),
                name='uniq_pending_prescription_per_day',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'department'], name='pos_txn_status_dept_idx'),
            models.Index(fields=['patient', 'service', 'prescription_date'], name='pos_txn_pat_svc_date_idx'),
            models.Index(fields=['status', 'prescribed_by'], name='pos_txn_status_presc_idx'),
        ]

    def __str__(self) -> str:
        return f"T{self.pk} p={self.patient_id} s={self.service_id} {self.status}"


class TransactionTransition(models.Model):
    """Records a status transition for a transaction."""
    transaction = models.ForeignKey(Transaction, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='transaction_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.transaction_id}: {self.from_status} → {self.to_status}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='pos_audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='pos_audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
