"""
Doctor and cashier endpoints around prescriptions.

``prescribe`` records services ordered for a patient; the cashier
lists what is waiting and collects payment for a batch of services.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from pos.permissions import IsCashier, IsDoctor
from pos.serializers.workflow import PrescribeSerializer, ProcessPaymentSerializer
from pos.services.payments import collect_payment
from pos.services.prescriptions import list_pending_prescriptions, prescribe
from pos.views.common import outcome_response


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctor])
def prescribe_view(request):
    s = PrescribeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    outcome = prescribe(v['patientId'], request.user, v['serviceIds'], v.get('diagnosis', ''))
    return outcome_response(outcome, success_status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCashier])
def pending_payment(request):
    items = list_pending_prescriptions()
    return Response({'ok': True, 'count': len(items), 'items': items})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCashier])
def process_payment(request):
    s = ProcessPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    outcome = collect_payment(v['patientId'], v['serviceIds'], v['totalAmount'], request.user)
    return outcome_response(outcome)
