"""
Department fulfillment endpoints.

Laboratory, pharmacy and radiology staff see the paid work routed to
them and move it to ``in_progress`` and ``completed``.  The department
comes from the URL; staff may only act on their own department.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from pos.permissions import IsDepartmentStaff
from pos.serializers.workflow import QueueQuerySerializer
from pos.services.fulfillment import complete_fulfillment, list_fulfillment_queue, start_fulfillment
from pos.views.common import outcome_response


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDepartmentStaff])
def queue(request, dept: str):
    q = QueueQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return outcome_response(list_fulfillment_queue(dept, q.validated_data.get('status') or None))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDepartmentStaff])
def start(request, dept: str, pk: int):
    return outcome_response(start_fulfillment(pk, dept, request.user))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDepartmentStaff])
def complete(request, dept: str, pk: int):
    return outcome_response(complete_fulfillment(pk, dept, request.user))
