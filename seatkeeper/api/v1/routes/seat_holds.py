from fastapi import APIRouter, Depends, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.core.config import HOLD_TTL_MS
from seatkeeper.core.database import get_db
from seatkeeper.services import hold_service
from seatkeeper.domain.seating.schemas import HoldRequestDTO, SessionRequestDTO, SessionHoldRequestDTO, \
    SessionReleaseRequestDTO, SeatHoldReadDTO, SessionHoldReadDTO, SessionReleaseReadDTO


router = APIRouter(prefix="/seating-charts/{chart_id}", tags=["seat-holds"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/seats/{seat_id}/hold",
    status_code=status.HTTP_201_CREATED,
    response_model=SeatHoldReadDTO
)
async def place_hold(chart_id: int, seat_id: int, schema: HoldRequestDTO, db: db_dependency):
    seat = await hold_service.place_hold(db, chart_id, seat_id, schema.session_id, schema.ttl_ms or HOLD_TTL_MS)
    return SeatHoldReadDTO.model_validate(seat)


@router.post(
    "/seats/{seat_id}/hold/extend",
    status_code=status.HTTP_200_OK,
    response_model=SeatHoldReadDTO
)
async def extend_hold(chart_id: int, seat_id: int, schema: HoldRequestDTO, db: db_dependency):
    seat = await hold_service.extend_hold(db, chart_id, seat_id, schema.session_id, schema.ttl_ms or HOLD_TTL_MS)
    return SeatHoldReadDTO.model_validate(seat)


@router.post(
    "/seats/{seat_id}/hold/release",
    status_code=status.HTTP_200_OK,
    response_model=SeatHoldReadDTO
)
async def release_hold(chart_id: int, seat_id: int, schema: SessionRequestDTO, db: db_dependency):
    seat = await hold_service.release(db, chart_id, seat_id, schema.session_id)
    return SeatHoldReadDTO.model_validate(seat)


@router.post(
    "/seats/{seat_id}/hold/commit",
    status_code=status.HTTP_200_OK,
    response_model=SeatHoldReadDTO
)
async def commit_hold(chart_id: int, seat_id: int, schema: SessionRequestDTO, db: db_dependency):
    seat = await hold_service.commit(db, chart_id, seat_id, schema.session_id)
    return SeatHoldReadDTO.model_validate(seat)


@router.post(
    "/session-holds",
    status_code=status.HTTP_201_CREATED,
    response_model=SessionHoldReadDTO
)
async def hold_seats_for_session(chart_id: int, schema: SessionHoldRequestDTO, db: db_dependency):
    seats, expires_at = await hold_service.hold_seats_for_session(
        db, chart_id, schema.session_id, schema.seat_ids, schema.ttl_ms or HOLD_TTL_MS
    )
    return SessionHoldReadDTO(
        chart_id=chart_id,
        session_id=schema.session_id,
        seat_ids=[seat.id for seat in seats],
        expires_at=expires_at
    )


@router.post(
    "/session-holds/release",
    status_code=status.HTTP_200_OK,
    response_model=SessionReleaseReadDTO
)
async def release_session_holds(chart_id: int, schema: SessionReleaseRequestDTO, db: db_dependency):
    released = await hold_service.release_session_holds(db, chart_id, schema.session_id, schema.seat_ids)
    return SessionReleaseReadDTO(chart_id=chart_id, session_id=schema.session_id, released_seats=released)
