import logging

from django.db import DatabaseError, IntegrityError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


def _error(code, message, status):
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is not None:
        if isinstance(resp.data, dict):
            detail = resp.data.get('detail') or resp.data
        else:
            detail = resp.data
        return _error('api_error', detail, resp.status_code)
    view = context.get('view')
    if isinstance(exc, IntegrityError):
        logger.warning("constraint violation in %s: %s", view, exc)
        return _error('constraint_violation', 'The change conflicts with existing data', 400)
    if isinstance(exc, DatabaseError):
        logger.exception("storage error in %s", view)
        return _error('storage_error', 'Database error, please retry', 500)
    logger.exception("unhandled error in %s", view)
    return _error('server_error', str(exc), 500)
