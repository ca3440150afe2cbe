import json
import pytest
from sqlalchemy.exc import OperationalError
from seatkeeper.core import auditing
from seatkeeper.core.auditing import AuditSpan, audit_emit


def _redis(mocker):
    r = mocker.Mock()
    r.xadd = mocker.AsyncMock(return_value="1-0")
    mocker.patch("seatkeeper.core.auditing.get_redis", return_value=r)
    return r


def _payload(r):
    _, fields = r.xadd.await_args.args
    return json.loads(fields["json"])


@pytest.mark.asyncio
async def test_audit_emit_without_redis_is_noop(mocker):
    mocker.patch("seatkeeper.core.auditing.get_redis", return_value=None)

    assert await audit_emit(scope="SEATING", action="PLACE_HOLD", status="SUCCESS") is None


@pytest.mark.asyncio
async def test_audit_emit_swallows_redis_errors(mocker):
    r = _redis(mocker)
    r.xadd.side_effect = ConnectionError("redis down")

    assert await audit_emit(scope="SEATING", action="PLACE_HOLD", status="SUCCESS") is None


@pytest.mark.asyncio
async def test_audit_span_success_emits_hold_fields(mocker):
    r = _redis(mocker)

    async with AuditSpan(
        scope="SEATING", action="PLACE_HOLD", object_type="seat", object_id=11, chart_id=1, session_id="checkout-1"
    ) as span:
        span.meta["session_expiry"] = 900000

    payload = _payload(r)
    assert payload["status"] == "SUCCESS"
    assert payload["chart_id"] == 1
    assert payload["session_id"] == "checkout-1"
    assert payload["meta"]["session_expiry"] == 900000
    assert "duration_ms" in payload["meta"]


@pytest.mark.asyncio
async def test_audit_span_failure_emits_fail_and_reraises(mocker):
    r = _redis(mocker)

    with pytest.raises(OperationalError):
        async with AuditSpan(scope="SEATING", action="SWEEP_LAPSED_HOLDS"):
            raise OperationalError("UPDATE", {}, Exception("down"))

    payload = _payload(r)
    assert payload["status"] == auditing.AuditStatus.FAIL
    assert payload["reason"] == "Database error"
    assert payload["meta"]["error"] == "OperationalError"
