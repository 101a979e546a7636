import bleach
from rest_framework import serializers

from pos.models import Patient


class PatientCreateSerializer(serializers.Serializer):
    fullName = serializers.CharField(max_length=255)
    age = serializers.IntegerField(min_value=1, max_value=149)
    gender = serializers.ChoiceField(choices=Patient.GENDER_CHOICES)
    contact = serializers.CharField(required=False, allow_blank=True, max_length=64)
    patientType = serializers.ChoiceField(choices=Patient.TYPE_CHOICES, required=False, default='new')

    def validate_fullName(self, v):
        v = bleach.clean((v or '').strip(), tags=set(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v

    def validate_contact(self, v):
        return bleach.clean((v or '').strip(), tags=set(), strip=True)


class PatientListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=64)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
