import copy
import asyncio
from types import SimpleNamespace
from seatkeeper.domain.seating.models import SeatStatus


def session_factory(mocker):
    # MagicMock supports `async with`, for both the session and db.begin()
    factory = mocker.MagicMock()
    factory.return_value.__aenter__.return_value = mocker.MagicMock()
    return factory


def make_seat(mocker, **kwargs):
    defaults = {
        "id": 1,
        "chart_id": 1,
        "status": SeatStatus.AVAILABLE,
        "session_id": None,
        "session_expiry": None,
        "version": 1,
    }
    defaults.update(kwargs)
    return mocker.Mock(**defaults)


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class _Savepoint:
    """Snapshot on enter, restore on an exceptional exit, like SAVEPOINT / ROLLBACK TO."""

    def __init__(self, store):
        self.store = store

    async def __aenter__(self):
        self.seats = copy.deepcopy(self.store.seats)
        self.charts = copy.deepcopy(self.store.charts)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.store.seats.clear()
            self.store.seats.update(self.seats)
            self.store.charts.clear()
            self.store.charts.update(self.charts)
        return False


class InMemorySeatStore:
    """
    Replaces seatkeeper.domain.seating.crud in tests.
    Reads hand out snapshots and yield to the loop, so concurrent callers really interleave;
    writes are compare-and-swap on the seat version, like the SQL UPDATE ... WHERE version = :v.
    """

    def __init__(self):
        self.seats: dict[int, dict] = {}
        self.charts: dict[int, dict] = {}
        self.failing_charts: dict[int, Exception] = {}
        self._touch = 0

    def add_chart(self, chart_id: int, seat_ids: list[int]) -> None:
        self.charts[chart_id] = {
            "total_seats": len(seat_ids),
            "reserved_seats": 0,
            "sold_seats": 0,
            "updated_at": 0,
            "writes": 0,
        }
        for seat_id in seat_ids:
            self.seats[seat_id] = {
                "id": seat_id,
                "chart_id": chart_id,
                "status": SeatStatus.AVAILABLE,
                "session_id": None,
                "session_expiry": None,
                "version": 1,
            }

    def put_hold(self, seat_id: int, session_id: str, expiry: int) -> None:
        row = self.seats[seat_id]
        row.update(status=SeatStatus.RESERVED, session_id=session_id, session_expiry=expiry)
        self.charts[row["chart_id"]]["reserved_seats"] += 1

    def session(self, mocker):
        db = mocker.MagicMock()
        db.begin_nested.side_effect = lambda: _Savepoint(self)
        return db

    def seat(self, seat_id: int) -> SimpleNamespace:
        return SimpleNamespace(**self.seats[seat_id])

    def _touch_chart(self, chart_id: int) -> None:
        self._touch += 1
        self.charts[chart_id]["updated_at"] = self._touch
        self.charts[chart_id]["writes"] += 1

    async def get_seat(self, db, chart_id, seat_id):
        row = self.seats.get(seat_id)
        snapshot = SimpleNamespace(**row) if row and row["chart_id"] == chart_id else None
        await asyncio.sleep(0)
        return snapshot

    async def compare_and_set_seat(self, db, seat_id, expected_version, **values):
        row = self.seats.get(seat_id)
        if row is None or row["version"] != expected_version:
            return None
        row.update(values)
        row["version"] += 1
        return SimpleNamespace(**row)

    async def adjust_chart_counts(self, db, chart_id, *, reserved=0, sold=0, total=0, structural=False):
        chart = self.charts[chart_id]
        chart["reserved_seats"] += reserved
        chart["sold_seats"] += sold
        chart["total_seats"] += total
        self._touch_chart(chart_id)

    async def release_session_seats(self, db, chart_id, session_id, seat_ids=None):
        released = []
        for row in self.seats.values():
            if row["chart_id"] != chart_id or row["status"] != SeatStatus.RESERVED:
                continue
            if row["session_id"] != session_id:
                continue
            if seat_ids is not None and row["id"] not in seat_ids:
                continue
            row.update(status=SeatStatus.AVAILABLE, session_id=None, session_expiry=None)
            row["version"] += 1
            released.append(row["id"])
        return released

    def _lapsed(self, row, now_ms) -> bool:
        return (
            row["status"] == SeatStatus.RESERVED
            and row["session_id"] is not None
            and row["session_expiry"] is not None
            and row["session_expiry"] < now_ms
        )

    async def list_chart_ids_with_lapsed_holds(self, db, now_ms, limit=None):
        chart_ids = sorted({row["chart_id"] for row in self.seats.values() if self._lapsed(row, now_ms)})
        return chart_ids[:limit] if limit is not None else chart_ids

    async def release_lapsed_seats(self, db, chart_id, now_ms):
        await asyncio.sleep(0)
        if chart_id in self.failing_charts:
            raise self.failing_charts[chart_id]
        released = []
        for row in self.seats.values():
            if row["chart_id"] == chart_id and self._lapsed(row, now_ms):
                row.update(status=SeatStatus.AVAILABLE, session_id=None, session_expiry=None)
                row["version"] += 1
                released.append(row["id"])
        return released
