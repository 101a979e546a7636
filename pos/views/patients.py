"""
Patient registration and listing.

Any authenticated staff member may look patients up; only the cashier
desk (and administrators) register new ones.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from pos.permissions import IsCashier
from pos.serializers.patient import PatientCreateSerializer, PatientListQuerySerializer
from pos.services.patients import format_patient, list_patients, register_patient


def _list(request):
    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows, total = list_patients(
        q=q.validated_data.get('q'),
        page=q.validated_data.get('page') or 1,
        page_size=q.validated_data.get('pageSize') or 50,
    )
    return Response({'ok': True, 'total': total, 'items': [format_patient(p) for p in rows]})


def _register(request):
    if not IsCashier().has_permission(request, None):
        return Response({'ok': False, 'error': {'code': 'forbidden', 'message': 'Only the cashier desk registers patients'}},
                        status=status.HTTP_403_FORBIDDEN)
    s = PatientCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    patient = register_patient(
        request.user,
        full_name=v['fullName'],
        age=v['age'],
        gender=v['gender'],
        contact=v.get('contact', ''),
        patient_type=v.get('patientType') or 'new',
    )
    return Response({'ok': True, 'patient': format_patient(patient)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def patients(request):
    if request.method == 'GET':
        return _list(request)
    return _register(request)
