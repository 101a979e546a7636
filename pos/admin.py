"""
Django admin registrations for the POS models.

Lets superusers inspect patients, the service catalog and the
transaction ledger at ``/admin/``.  Transactions are read-mostly here:
status changes should go through the API so transitions are recorded.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    HospitalNumberSeries,
    Patient,
    Service,
    Transaction,
    TransactionTransition,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(HospitalNumberSeries)
class HospitalNumberSeriesAdmin(admin.ModelAdmin):
    list_display = ('prefix', 'year', 'counter', 'padding', 'updated_at')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('hospital_number', 'full_name', 'age', 'gender', 'patient_type', 'is_active', 'registered_at')
    list_filter = ('gender', 'patient_type', 'is_active')
    search_fields = ('hospital_number', 'full_name', 'contact')


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'price', 'is_active')
    list_filter = ('category', 'is_active')
    search_fields = ('name',)


class TransactionTransitionInline(admin.TabularInline):
    model = TransactionTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')
    can_delete = False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'service', 'amount', 'quantity', 'status', 'department', 'prescription_date', 'created_at')
    list_filter = ('status', 'department', 'service__category')
    search_fields = ('patient__full_name', 'patient__hospital_number', 'service__name')
    readonly_fields = ('status', 'amount', 'created_at', 'updated_at')
    inlines = [TransactionTransitionInline]


@admin.register(TransactionTransition)
class TransactionTransitionAdmin(admin.ModelAdmin):
    list_display = ('transaction', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
