from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from seatkeeper.core.auditing import AuditSpan
from seatkeeper.domain.seating import crud
from seatkeeper.domain.seating.models import SeatingChart, ChartSection, ChartTable, Seat, SeatStatus
from seatkeeper.domain.seating.schemas import SeatingChartCreateDTO, SeatingChartUpdateDTO
from seatkeeper.domain.exceptions import NotFound, Conflict


def _build_sections(chart_id: int, schema: SeatingChartCreateDTO) -> list[ChartSection]:
    sections = []
    for section_pos, section in enumerate(schema.sections):
        tables = []
        for table_pos, table in enumerate(section.tables):
            seats = [
                Seat(chart_id=chart_id, position=seat_pos, number=seat.number, status=SeatStatus.AVAILABLE)
                for seat_pos, seat in enumerate(table.seats)
            ]
            tables.append(ChartTable(position=table_pos, label=table.label, seats=seats))
        sections.append(ChartSection(position=section_pos, key=section.key, name=section.name, tables=tables))
    return sections


def _seat_total(schema: SeatingChartCreateDTO) -> int:
    return sum(len(table.seats) for section in schema.sections for table in section.tables)


async def get_chart(db: AsyncSession, chart_id: int) -> SeatingChart:
    chart = await crud.get_chart_by_id(db, chart_id)
    if not chart:
        raise NotFound("Seating chart not found", ctx={"chart_id": chart_id})
    return chart


async def get_chart_for_event(db: AsyncSession, event_id: int) -> SeatingChart:
    chart = await crud.get_chart_by_event(db, event_id)
    if not chart:
        raise NotFound("Seating chart not found for event", ctx={"event_id": event_id})
    return chart


async def create_chart(db: AsyncSession, schema: SeatingChartCreateDTO) -> SeatingChart:
    async with AuditSpan(
        scope="SEATING_CHARTS",
        action="CREATE",
        object_type="seating_chart",
        meta={"event_id": schema.event_id, "sections": len(schema.sections)}
    ) as span:
        chart = await crud.create_chart(
            db, {"event_id": schema.event_id, "name": schema.name, "total_seats": _seat_total(schema)}
        )
        try:
            await db.flush()
        except IntegrityError as e:
            raise Conflict("Seating chart for this event already exists", ctx={"event_id": schema.event_id}) from e

        chart.sections.extend(_build_sections(chart.id, schema))
        await db.flush()

        span.object_id = chart.id
        span.chart_id = chart.id
        span.meta["total_seats"] = chart.total_seats
        return chart


async def update_chart(db: AsyncSession, chart_id: int, schema: SeatingChartUpdateDTO) -> SeatingChart:
    async with AuditSpan(
        scope="SEATING_CHARTS",
        action="UPDATE",
        object_type="seating_chart",
        object_id=chart_id,
        chart_id=chart_id,
        meta={"fields": sorted(schema.model_fields_set)}
    ):
        chart = await crud.lock_chart(db, chart_id)
        if not chart:
            raise NotFound("Seating chart not found", ctx={"chart_id": chart_id})

        for field, value in schema.model_dump(exclude_unset=True).items():
            setattr(chart, field, value)
        chart.version += 1
        chart.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return chart


async def delete_chart(db: AsyncSession, chart_id: int) -> None:
    """
    Structural edit: drop the chart with all its seats.
    Seats are locked before the chart row, in the order hold operations take them,
    so a racing hold either commits first and is refused here or loses its compare-and-swap.
    """
    async with AuditSpan(
        scope="SEATING_CHARTS",
        action="DELETE",
        object_type="seating_chart",
        object_id=chart_id,
        chart_id=chart_id
    ):
        seats = await crud.lock_chart_seats(db, chart_id)
        held = [seat.id for seat in seats if seat.status == SeatStatus.RESERVED]
        if held:
            raise Conflict(
                "Cannot delete seating chart with active holds",
                ctx={"chart_id": chart_id, "reserved_seats": len(held), "seat_ids": held}
            )

        chart = await crud.lock_chart(db, chart_id)
        if not chart:
            raise NotFound("Seating chart not found", ctx={"chart_id": chart_id})

        await crud.delete_chart(db, chart_id)
        await db.flush()


async def remove_table(db: AsyncSession, chart_id: int, table_id: int) -> None:
    """
    Structural edit: drop a table and its seats.
    The seats are row-locked first, so an in-flight hold either lands before the check
    (and the edit is refused) or fails its compare-and-swap after the delete.
    """
    async with AuditSpan(
        scope="SEATING_CHARTS",
        action="REMOVE_TABLE",
        object_type="chart_table",
        object_id=table_id,
        chart_id=chart_id
    ) as span:
        table = await crud.get_table_in_chart(db, chart_id, table_id)
        if not table:
            raise NotFound("Table not found in seating chart", ctx={"chart_id": chart_id, "table_id": table_id})

        seats = await crud.lock_table_seats(db, table_id)
        busy = [seat.id for seat in seats if seat.status != SeatStatus.AVAILABLE]
        if busy:
            raise Conflict(
                "Table has held or sold seats",
                ctx={"chart_id": chart_id, "table_id": table_id, "seat_ids": busy}
            )

        await crud.delete_table(db, table_id)
        await crud.adjust_chart_counts(db, chart_id, total=-len(seats), structural=True)
        await db.flush()
        span.meta["removed_seats"] = len(seats)
