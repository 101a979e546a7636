import logging
from typing import Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def queue_group(department: str) -> str:
    return f"queue.{department}"


def _send_refresh(departments: list[str], reason: str) -> None:
    # Runs after commit: a dead channel layer must not turn a committed change into an error.
    try:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        now = timezone.now()
        for dept in departments:
            event = {"type": "queue.refresh", "department": dept, "reason": reason, "ts": now.isoformat()}
            async_to_sync(channel_layer.group_send)(queue_group(dept), event)
    except Exception:
        logger.exception("queue refresh to %s (%s) failed", departments, reason)
        return
    logger.debug("queue refresh sent to %s (%s)", departments, reason)


def broadcast_queue_refresh(departments: Iterable[str], reason: str) -> None:
    """Tell department dashboards to re-fetch their queue once the current transaction commits."""
    depts = sorted({str(d) for d in departments if d})
    if not depts:
        return
    transaction.on_commit(lambda: _send_refresh(depts, reason), robust=True)
