import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.core.auditing import AuditSpan
from seatkeeper.core.config import HOLD_TTL_MS
from seatkeeper.core.utils.clock import now_ms
from seatkeeper.domain.seating import crud
from seatkeeper.domain.seating.models import Seat, SeatStatus
from seatkeeper.domain.exceptions import NotFound, InvalidInput, SeatUnavailable, NotHolder, SeatNotReserved, \
    HoldExpired, ConcurrentModification, PersistenceFailure

logger = logging.getLogger("seatkeeper.holds")


@asynccontextmanager
async def _persistence(action: str, **ctx):
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceFailure(f"Could not {action}", ctx=ctx) from e


def _hold_lapsed(seat: Seat, now: int) -> bool:
    return (
        seat.status == SeatStatus.RESERVED
        and seat.session_id is not None
        and seat.session_expiry is not None
        and seat.session_expiry < now
    )


def _seat_ctx(seat: Seat) -> dict:
    return {"chart_id": seat.chart_id, "seat_id": seat.id, "status": seat.status}


def _require_ttl(ttl_ms: int) -> None:
    if ttl_ms <= 0:
        raise InvalidInput("Hold TTL must be positive", ctx={"ttl_ms": ttl_ms})


async def _require_seat(db: AsyncSession, chart_id: int, seat_id: int) -> Seat:
    async with _persistence("read seat", chart_id=chart_id, seat_id=seat_id):
        seat = await crud.get_seat(db, chart_id, seat_id)
    if not seat:
        raise NotFound("Seat not found", ctx={"chart_id": chart_id, "seat_id": seat_id})
    return seat


def _require_holder(seat: Seat, session_id: str) -> None:
    if seat.status != SeatStatus.RESERVED:
        raise SeatNotReserved("Seat is not reserved", ctx=_seat_ctx(seat))
    if seat.session_id != session_id:
        raise NotHolder("Seat is held by another session", ctx={**_seat_ctx(seat), "session_id": session_id})


async def _swap(
        db: AsyncSession,
        seat: Seat,
        *,
        status: SeatStatus,
        session_id: str | None = None,
        session_expiry: int | None = None
) -> Seat:
    expected_version = seat.version
    async with _persistence("write seat", chart_id=seat.chart_id, seat_id=seat.id):
        updated = await crud.compare_and_set_seat(
            db,
            seat.id,
            expected_version,
            status=status,
            session_id=session_id,
            session_expiry=session_expiry
        )
    if updated is None:
        raise ConcurrentModification(
            "Seat was modified concurrently",
            ctx={"chart_id": seat.chart_id, "seat_id": seat.id, "expected_version": expected_version}
        )
    return updated


async def _adjust_counts(db: AsyncSession, chart_id: int, **deltas: int) -> None:
    async with _persistence("update chart counters", chart_id=chart_id):
        await crud.adjust_chart_counts(db, chart_id, **deltas)


async def place_hold(
        db: AsyncSession,
        chart_id: int,
        seat_id: int,
        session_id: str,
        ttl_ms: int = HOLD_TTL_MS
) -> Seat:
    """
    Reserve an AVAILABLE seat for a checkout session until now + ttl_ms.
    - A hold that already lapsed (but was not swept yet) counts as available and is taken over
    - Holding again from the same session is rejected; use extend_hold
    - The write is a compare-and-swap on the seat version, so two sessions racing for one seat
      end with exactly one hold and one SeatUnavailable/ConcurrentModification
    """
    async with AuditSpan(
        scope="SEATING",
        action="PLACE_HOLD",
        object_type="seat",
        object_id=seat_id,
        chart_id=chart_id,
        session_id=session_id,
        meta={"ttl_ms": ttl_ms}
    ) as span:
        _require_ttl(ttl_ms)
        now = now_ms()
        seat = await _require_seat(db, chart_id, seat_id)

        lapsed = _hold_lapsed(seat, now)
        if seat.status != SeatStatus.AVAILABLE and not lapsed:
            raise SeatUnavailable("Seat is not available", ctx=_seat_ctx(seat))

        held = await _swap(
            db, seat, status=SeatStatus.RESERVED, session_id=session_id, session_expiry=now + ttl_ms
        )
        if lapsed:
            span.meta["took_over_lapsed_hold"] = True
        else:
            await _adjust_counts(db, chart_id, reserved=1)

        span.meta["session_expiry"] = held.session_expiry
        return held


async def extend_hold(
        db: AsyncSession,
        chart_id: int,
        seat_id: int,
        session_id: str,
        ttl_ms: int = HOLD_TTL_MS
) -> Seat:
    async with AuditSpan(
        scope="SEATING",
        action="EXTEND_HOLD",
        object_type="seat",
        object_id=seat_id,
        chart_id=chart_id,
        session_id=session_id,
        meta={"ttl_ms": ttl_ms}
    ) as span:
        _require_ttl(ttl_ms)
        now = now_ms()
        seat = await _require_seat(db, chart_id, seat_id)
        _require_holder(seat, session_id)
        if _hold_lapsed(seat, now):
            raise HoldExpired("Hold expired", ctx={**_seat_ctx(seat), "session_expiry": seat.session_expiry})

        extended = await _swap(
            db, seat, status=SeatStatus.RESERVED, session_id=session_id, session_expiry=now + ttl_ms
        )
        span.meta["session_expiry"] = extended.session_expiry
        return extended


async def release(db: AsyncSession, chart_id: int, seat_id: int, session_id: str) -> Seat:
    async with AuditSpan(
        scope="SEATING",
        action="RELEASE_HOLD",
        object_type="seat",
        object_id=seat_id,
        chart_id=chart_id,
        session_id=session_id
    ):
        seat = await _require_seat(db, chart_id, seat_id)
        _require_holder(seat, session_id)

        released = await _swap(db, seat, status=SeatStatus.AVAILABLE)
        await _adjust_counts(db, chart_id, reserved=-1)
        return released


async def force_release(db: AsyncSession, chart_id: int, seat_id: int, actor: str | None = None) -> Seat:
    """Administrative override: releases a hold regardless of which session owns it."""
    async with AuditSpan(
        scope="SEATING",
        action="FORCE_RELEASE",
        object_type="seat",
        object_id=seat_id,
        chart_id=chart_id,
        meta={"actor": actor}
    ) as span:
        seat = await _require_seat(db, chart_id, seat_id)
        if seat.status != SeatStatus.RESERVED:
            raise SeatNotReserved("Seat is not reserved", ctx=_seat_ctx(seat))

        previous_session = seat.session_id
        span.session_id = previous_session
        released = await _swap(db, seat, status=SeatStatus.AVAILABLE)
        await _adjust_counts(db, chart_id, reserved=-1)

        logger.warning(
            "Administrative release: chart_id=%s seat_id=%s session_id=%s actor=%s",
            chart_id, seat_id, previous_session, actor
        )
        return released


async def commit(db: AsyncSession, chart_id: int, seat_id: int, session_id: str) -> Seat:
    """
    Turn a live hold into a sale. Expiry is checked here, not left to the sweeper:
    a lapsed hold cannot be committed even if it was not reclaimed yet.
    """
    async with AuditSpan(
        scope="SEATING",
        action="COMMIT_HOLD",
        object_type="seat",
        object_id=seat_id,
        chart_id=chart_id,
        session_id=session_id
    ):
        now = now_ms()
        seat = await _require_seat(db, chart_id, seat_id)
        _require_holder(seat, session_id)
        if seat.session_expiry is None or seat.session_expiry < now:
            raise HoldExpired("Hold expired", ctx={**_seat_ctx(seat), "session_expiry": seat.session_expiry})

        sold = await _swap(db, seat, status=SeatStatus.SOLD)
        await _adjust_counts(db, chart_id, reserved=-1, sold=1)
        return sold


async def hold_seats_for_session(
        db: AsyncSession,
        chart_id: int,
        session_id: str,
        seat_ids: list[int],
        ttl_ms: int = HOLD_TTL_MS
) -> tuple[list[Seat], int]:
    """
    Hold several seats for one session, all or nothing.
    Seats are taken in id order so overlapping requests lock rows in the same order.
    """
    async with AuditSpan(
        scope="SEATING",
        action="HOLD_SESSION_SEATS",
        object_type="seating_chart",
        object_id=chart_id,
        chart_id=chart_id,
        session_id=session_id,
        meta={"seat_ids": list(seat_ids), "ttl_ms": ttl_ms}
    ) as span:
        _require_ttl(ttl_ms)
        if not seat_ids:
            raise InvalidInput("No seats selected", ctx={"chart_id": chart_id})

        now = now_ms()
        expires_at = now + ttl_ms
        held: list[Seat] = []
        newly_reserved = 0

        async with db.begin_nested():
            for seat_id in sorted(set(seat_ids)):
                seat = await _require_seat(db, chart_id, seat_id)
                lapsed = _hold_lapsed(seat, now)
                if seat.status != SeatStatus.AVAILABLE and not lapsed:
                    raise SeatUnavailable("Seat is not available", ctx=_seat_ctx(seat))
                held.append(await _swap(
                    db, seat, status=SeatStatus.RESERVED, session_id=session_id, session_expiry=expires_at
                ))
                if not lapsed:
                    newly_reserved += 1

            if newly_reserved:
                await _adjust_counts(db, chart_id, reserved=newly_reserved)

        span.meta["expires_at"] = expires_at
        return held, expires_at


async def release_session_holds(
        db: AsyncSession,
        chart_id: int,
        session_id: str,
        seat_ids: list[int] | None = None
) -> int:
    """Release every seat (or only `seat_ids`) the session still holds in the chart."""
    async with AuditSpan(
        scope="SEATING",
        action="RELEASE_SESSION_SEATS",
        object_type="seating_chart",
        object_id=chart_id,
        chart_id=chart_id,
        session_id=session_id,
        meta={"seat_ids": list(seat_ids) if seat_ids is not None else None}
    ) as span:
        async with _persistence("release session holds", chart_id=chart_id, session_id=session_id):
            released = await crud.release_session_seats(db, chart_id, session_id, seat_ids)
        if released:
            await _adjust_counts(db, chart_id, reserved=-len(released))

        span.meta["released_seat_ids"] = released
        return len(released)
