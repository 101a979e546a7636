"""
Transaction listing, cashier payment queue, direct sales and
administrative cancellation.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from pos.models import Transaction
from pos.permissions import IsAdminRole, IsCashier
from pos.serializers.workflow import (
    CancelSerializer,
    PaymentQueueQuerySerializer,
    SaleSerializer,
    TransactionQuerySerializer,
)
from pos.services.fulfillment import cancel_transaction
from pos.services.payments import payment_queue, record_sale
from pos.services.transactions import list_transactions, transition_history
from pos.views.common import outcome_response


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transactions(request):
    q = TransactionQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    items = list_transactions(
        status=v.get('status'),
        department=v.get('department'),
        patient_id=v.get('patientId'),
        limit=v['limit'],
    )
    return Response({'ok': True, 'count': len(items), 'items': items})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCashier])
def payment_queue_view(request):
    q = PaymentQueueQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = payment_queue(search=q.validated_data.get('search'), category=q.validated_data.get('category'))
    return Response({'ok': True, 'count': len(items), 'items': items})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsCashier])
def sale(request):
    s = SaleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    outcome = record_sale(v['patientId'], v['serviceId'], request.user, quantity=v['quantity'], notes=v['notes'])
    return outcome_response(outcome, success_status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def cancel(request, pk: int):
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return outcome_response(cancel_transaction(pk, request.user, s.validated_data['reason']))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def history(request, pk: int):
    if not Transaction.objects.filter(pk=pk).exists():
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': 'Transaction not found'}},
                        status=status.HTTP_404_NOT_FOUND)
    return Response({'ok': True, 'transactionId': pk, 'items': transition_history(pk)})
