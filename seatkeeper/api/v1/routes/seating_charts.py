from fastapi import APIRouter, Depends, Response, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.core.database import get_db
from seatkeeper.core.dependencies.auth import require_roles
from seatkeeper.services import seating_chart_service
from seatkeeper.domain.seating.schemas import SeatingChartCreateDTO, SeatingChartReadDTO, SeatingChartUpdateDTO, \
    SeatingChartSummaryDTO


router = APIRouter(tags=['seating-charts'])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/seating-charts",
    status_code=status.HTTP_201_CREATED,
    response_model=SeatingChartReadDTO,
    dependencies=[Depends(require_roles("ADMIN", "ORGANIZER"))]
)
async def create_seating_chart(schema: SeatingChartCreateDTO, db: db_dependency, response: Response):
    chart = await seating_chart_service.create_chart(db, schema)
    response.headers["Location"] = f"/seating-charts/{chart.id}"
    return chart


@router.get(
    "/seating-charts/{chart_id}",
    status_code=status.HTTP_200_OK,
    response_model=SeatingChartReadDTO
)
async def get_seating_chart(chart_id: int, db: db_dependency):
    return await seating_chart_service.get_chart(db, chart_id)


@router.get(
    "/events/{event_id}/seating-chart",
    status_code=status.HTTP_200_OK,
    response_model=SeatingChartReadDTO
)
async def get_event_seating_chart(event_id: int, db: db_dependency):
    return await seating_chart_service.get_chart_for_event(db, event_id)


@router.patch(
    "/seating-charts/{chart_id}",
    status_code=status.HTTP_200_OK,
    response_model=SeatingChartSummaryDTO,
    dependencies=[Depends(require_roles("ADMIN", "ORGANIZER"))]
)
async def update_seating_chart(chart_id: int, schema: SeatingChartUpdateDTO, db: db_dependency):
    return await seating_chart_service.update_chart(db, chart_id, schema)


@router.delete(
    "/seating-charts/{chart_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles("ADMIN", "ORGANIZER"))]
)
async def delete_seating_chart(chart_id: int, db: db_dependency):
    await seating_chart_service.delete_chart(db, chart_id)


@router.delete(
    "/seating-charts/{chart_id}/tables/{table_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles("ADMIN", "ORGANIZER"))]
)
async def remove_table(chart_id: int, table_id: int, db: db_dependency):
    await seating_chart_service.remove_table(db, chart_id, table_id)
