from typing import Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.domain.seating.models import SeatingChart, ChartSection, ChartTable, Seat, SeatStatus


def _hold_lapsed_clause(now_ms: int):
    return (
        (Seat.status == SeatStatus.RESERVED)
        & Seat.session_id.is_not(None)
        & Seat.session_expiry.is_not(None)
        & (Seat.session_expiry < now_ms)
    )


async def get_chart_by_id(db: AsyncSession, chart_id: int) -> SeatingChart | None:
    stmt = select(SeatingChart).where(SeatingChart.id == chart_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_chart_by_event(db: AsyncSession, event_id: int) -> SeatingChart | None:
    stmt = select(SeatingChart).where(SeatingChart.event_id == event_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def create_chart(db: AsyncSession, data: dict) -> SeatingChart:
    chart = SeatingChart(**data, sections=[])
    db.add(chart)
    return chart


async def delete_chart(db: AsyncSession, chart_id: int) -> None:
    await db.execute(delete(SeatingChart).where(SeatingChart.id == chart_id))


async def lock_chart(db: AsyncSession, chart_id: int) -> SeatingChart | None:
    stmt = select(SeatingChart).where(SeatingChart.id == chart_id).with_for_update()
    return await db.scalar(stmt)


async def get_table_in_chart(db: AsyncSession, chart_id: int, table_id: int) -> ChartTable | None:
    stmt = (
        select(ChartTable)
        .join(ChartSection)
        .where(ChartTable.id == table_id, ChartSection.chart_id == chart_id)
    )
    return await db.scalar(stmt)


async def lock_table_seats(db: AsyncSession, table_id: int) -> list[Seat]:
    stmt = select(Seat).where(Seat.table_id == table_id).order_by(Seat.id).with_for_update()
    result = await db.scalars(stmt)
    return list(result)


async def delete_table(db: AsyncSession, table_id: int) -> None:
    await db.execute(delete(ChartTable).where(ChartTable.id == table_id))


async def lock_chart_seats(db: AsyncSession, chart_id: int) -> list[Seat]:
    stmt = select(Seat).where(Seat.chart_id == chart_id).order_by(Seat.id).with_for_update()
    result = await db.scalars(stmt)
    return list(result)


async def get_seat(db: AsyncSession, chart_id: int, seat_id: int) -> Seat | None:
    stmt = select(Seat).where(Seat.id == seat_id, Seat.chart_id == chart_id)
    return await db.scalar(stmt)


async def compare_and_set_seat(db: AsyncSession, seat_id: int, expected_version: int, **values: Any) -> Seat | None:
    """
    Writes `values` only if the seat still carries `expected_version`.
    Returns the refreshed seat, or None when another writer got there first.
    """
    stmt = (
        update(Seat)
        .where(Seat.id == seat_id, Seat.version == expected_version)
        .values(**values, version=Seat.version + 1)
        .returning(Seat)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    return await db.scalar(stmt)


async def release_session_seats(
        db: AsyncSession,
        chart_id: int,
        session_id: str,
        seat_ids: list[int] | None = None
) -> list[int]:
    stmt = (
        update(Seat)
        .where(Seat.chart_id == chart_id, Seat.status == SeatStatus.RESERVED, Seat.session_id == session_id)
        .values(status=SeatStatus.AVAILABLE, session_id=None, session_expiry=None, version=Seat.version + 1)
        .returning(Seat.id)
        .execution_options(synchronize_session=False)
    )
    if seat_ids is not None:
        stmt = stmt.where(Seat.id.in_(seat_ids))
    result = await db.scalars(stmt)
    return list(result)


async def list_chart_ids_with_lapsed_holds(db: AsyncSession, now_ms: int, limit: int | None = None) -> list[int]:
    stmt = select(Seat.chart_id).where(_hold_lapsed_clause(now_ms)).distinct().order_by(Seat.chart_id)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.scalars(stmt)
    return list(result)


async def release_lapsed_seats(db: AsyncSession, chart_id: int, now_ms: int) -> list[int]:
    stmt = (
        update(Seat)
        .where(Seat.chart_id == chart_id, _hold_lapsed_clause(now_ms))
        .values(status=SeatStatus.AVAILABLE, session_id=None, session_expiry=None, version=Seat.version + 1)
        .returning(Seat.id)
        .execution_options(synchronize_session=False)
    )
    result = await db.scalars(stmt)
    return list(result)


async def adjust_chart_counts(
        db: AsyncSession,
        chart_id: int,
        *,
        reserved: int = 0,
        sold: int = 0,
        total: int = 0,
        structural: bool = False
) -> None:
    values = {
        "reserved_seats": SeatingChart.reserved_seats + reserved,
        "sold_seats": SeatingChart.sold_seats + sold,
        "total_seats": SeatingChart.total_seats + total,
        "updated_at": func.now(),
    }
    if structural:
        values["version"] = SeatingChart.version + 1
    await db.execute(
        update(SeatingChart)
        .where(SeatingChart.id == chart_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
