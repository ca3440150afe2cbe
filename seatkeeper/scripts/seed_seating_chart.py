import sys
import asyncio
from seatkeeper.core.database import AsyncSessionLocal
from seatkeeper.domain.seating import crud
from seatkeeper.domain.seating.models import SeatingChart
from seatkeeper.domain.seating.schemas import SeatingChartCreateDTO
from seatkeeper.services.seating_chart_service import create_chart

TABLES = 8
SEATS_PER_TABLE = 8


def ballroom_layout(event_id: int) -> SeatingChartCreateDTO:
    tables = [
        {"label": str(t), "seats": [{"number": str(s)} for s in range(1, SEATS_PER_TABLE + 1)]}
        for t in range(1, TABLES + 1)
    ]
    return SeatingChartCreateDTO.model_validate({
        "event_id": event_id,
        "name": "Main Ballroom",
        "sections": [{"key": "BALLROOM", "name": "Ballroom", "tables": tables}],
    })


async def seed_seating_chart(db, event_id: int) -> tuple[SeatingChart, bool]:
    existing = await crud.get_chart_by_event(db, event_id)
    if existing:
        return existing, False
    chart = await create_chart(db, ballroom_layout(event_id))
    return chart, True


async def main(event_id: int):
    async with AsyncSessionLocal() as db:
        chart, created = await seed_seating_chart(db, event_id)
        await db.commit()
        if created:
            print(f"Seating chart created: id={chart.id} seats={chart.total_seats}")
        else:
            print(f"Seating chart already exists: id={chart.id}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m seatkeeper.scripts.seed_seating_chart <event_id>")
        sys.exit(2)
    asyncio.run(main(int(sys.argv[1])))
