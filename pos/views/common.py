from rest_framework import status
from rest_framework.response import Response

from pos.services.outcomes import FailureKind, Outcome

OUTCOME_STATUS = {
    FailureKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    FailureKind.NOTHING_TO_PROCESS: status.HTTP_400_BAD_REQUEST,
    FailureKind.STATE_CONFLICT: status.HTTP_404_NOT_FOUND,
}


def outcome_response(outcome: Outcome, *, success_status=status.HTTP_200_OK) -> Response:
    """Render a service outcome as the API's ``{'ok': ...}`` envelope."""
    if outcome.ok:
        return Response({'ok': True, 'message': outcome.message, **outcome.data}, status=success_status)
    body = {'ok': False, 'error': {'code': outcome.kind.value, 'message': outcome.message}, **outcome.data}
    return Response(body, status=OUTCOME_STATUS[outcome.kind])
