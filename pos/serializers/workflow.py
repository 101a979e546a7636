"""
Request payloads for the prescription, payment and sale endpoints.

Field names follow the frontend (camelCase).  Only shape is checked
here; existence of patients and services is the services' job.
"""
import bleach
from rest_framework import serializers

from pos.models import ServiceCategory, TransactionStatus


class PrescribeSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    serviceIds = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False, max_length=100)
    diagnosis = serializers.CharField(required=False, allow_blank=True, max_length=2000, default='')


class ProcessPaymentSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    serviceIds = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False, max_length=100)
    totalAmount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class SaleSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    serviceId = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=1000, required=False, default=1)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000, default='')

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), tags=set(), strip=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class TransactionQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TransactionStatus.choices, required=False)
    department = serializers.CharField(required=False, max_length=16)
    patientId = serializers.IntegerField(required=False, min_value=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500, default=200)


class PaymentQueueQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True, max_length=64)
    category = serializers.ChoiceField(choices=ServiceCategory.choices, required=False)


class QueueQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, allow_blank=True)

    def validate_status(self, v):
        statuses = [s.strip() for s in (v or '').split(',') if s.strip()]
        unknown = [s for s in statuses if s not in TransactionStatus.values]
        if unknown:
            raise serializers.ValidationError(f"Unknown status: {', '.join(unknown)}")
        return statuses
