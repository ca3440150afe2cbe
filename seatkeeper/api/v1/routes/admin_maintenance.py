from fastapi import APIRouter, Depends, status, Query
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.core.database import get_db
from seatkeeper.core.dependencies.auth import require_roles, TokenPayload
from seatkeeper.services import hold_service
from seatkeeper.services.hold_reclamation_service import release_expired_holds
from seatkeeper.domain.seating.schemas import SweepStatsDTO, SeatHoldReadDTO


router = APIRouter(prefix="/admin", tags=["admin-maintenance"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/maintenance/release-expired-holds",
    status_code=status.HTTP_200_OK,
    response_model=SweepStatsDTO,
    dependencies=[Depends(require_roles("ADMIN"))]
)
async def release_expired(limit: int | None = Query(None, ge=1, le=100_000)):
    return await release_expired_holds(limit=limit)


@router.post(
    "/seating-charts/{chart_id}/seats/{seat_id}/force-release",
    status_code=status.HTTP_200_OK,
    response_model=SeatHoldReadDTO
)
async def force_release(
        chart_id: int,
        seat_id: int,
        db: db_dependency,
        admin: Annotated[TokenPayload, Depends(require_roles("ADMIN"))]
):
    seat = await hold_service.force_release(db, chart_id, seat_id, actor=admin.sub)
    return SeatHoldReadDTO.model_validate(seat)
