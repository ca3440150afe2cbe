import json
import time
from datetime import timezone, datetime
from typing import Any, Mapping
from sqlalchemy.exc import SQLAlchemyError
from seatkeeper.core.config import AUDIT_STREAM
from seatkeeper.core.ctx import get_redis, get_request_id, get_route, get_actor, get_actor_roles, get_client_ip


class AuditStatus:
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


async def audit_emit(
    *,
    scope: str,
    action: str,
    status: str,
    object_type: str | None = None,
    object_id: int | None = None,
    chart_id: int | None = None,
    session_id: str | None = None,
    reason: str | None = None,
    meta: Mapping[str, Any] | None = None
) -> str | None:
    r = get_redis()
    if not r:
        return None

    payload = {
        "request_id": get_request_id(),
        "scope": scope,
        "action": action,
        "status": status,
        "actor": get_actor(),
        "actor_roles": list(get_actor_roles() or []),
        "actor_ip": get_client_ip(),
        "route": get_route(),
        "object_type": object_type,
        "object_id": object_id,
        "chart_id": chart_id,
        "session_id": session_id,
        "reason": reason,
        "meta": dict(meta or {}),
    }
    try:
        return await r.xadd(AUDIT_STREAM, {"json": json.dumps(payload, default=str)})
    except Exception:
        return None


def _reason_from_exception(exception: BaseException | None) -> str | None:
    if exception is None:
        return None
    if isinstance(exception, SQLAlchemyError):
        return "Database error"
    return str(exception) or exception.__class__.__name__


class AuditSpan:
    def __init__(self, *, scope: str, action: str,
                 object_type: str | None = None, object_id: int | None = None,
                 chart_id: int | None = None, session_id: str | None = None,
                 meta: Mapping[str, Any] | None = None):
        self.scope = scope
        self.action = action
        self.object_type = object_type
        self.object_id = object_id
        self.chart_id = chart_id
        self.session_id = session_id
        self.meta = dict(meta or {})
        self._t0 = 0.0

    async def __aenter__(self):
        self._t0 = time.perf_counter()
        started = datetime.now(timezone.utc)
        self.meta.setdefault("occurred_at", started.isoformat(timespec="milliseconds").replace("+00:00", "Z"))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.meta["duration_ms"] = int((time.perf_counter() - self._t0) * 1000)
        status = AuditStatus.FAIL if exc else AuditStatus.SUCCESS
        if exc is not None:
            self.meta.setdefault("error", exc.__class__.__name__)
        await audit_emit(
            scope=self.scope, action=self.action, status=status,
            object_type=self.object_type, object_id=self.object_id,
            chart_id=self.chart_id, session_id=self.session_id,
            reason=_reason_from_exception(exc), meta=self.meta
        )
        return False
