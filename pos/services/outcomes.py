"""
Result objects returned by the workflow services.

Expected outcomes of concurrent use (a row somebody else already moved,
a payment batch with nothing left to charge) are not exceptions: the
services hand back an :class:`Outcome` and the route layer decides how
to present it.  Database failures are not wrapped here and propagate
as ``django.db.DatabaseError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    VALIDATION = 'validation_error'
    STATE_CONFLICT = 'state_conflict'
    NOTHING_TO_PROCESS = 'nothing_to_process'


@dataclass
class Outcome:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    kind: Optional[FailureKind] = None
    message: str = ''

    @classmethod
    def success(cls, message: str = '', **data: Any) -> 'Outcome':
        return cls(ok=True, data=data, message=message)

    @classmethod
    def failure(cls, kind: FailureKind, message: str, **data: Any) -> 'Outcome':
        return cls(ok=False, data=data, kind=kind, message=message)
