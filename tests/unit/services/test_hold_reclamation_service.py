import logging
import pytest
from sqlalchemy.exc import OperationalError
from seatkeeper.services import hold_reclamation_service
from seatkeeper.domain.seating.models import SeatStatus
from seatkeeper.domain.exceptions import PersistenceFailure
from tests.helper import session_factory

TTL = 900000


@pytest.fixture
def held(store):
    store.add_chart(1, [11, 12])
    store.put_hold(11, "sess1-abcd", expiry=TTL)
    return store


@pytest.mark.asyncio
@pytest.mark.parametrize("now", [600000, TTL])
async def test_sweep_leaves_live_holds_alone(mocker, held, clock, now):
    clock.now = now

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert stats == {"released_seats": 0, "charts_updated": 0, "charts_failed": 0}
    assert held.seat(11).status == SeatStatus.RESERVED
    assert held.charts[1]["writes"] == 0


@pytest.mark.asyncio
async def test_sweep_releases_lapsed_hold(mocker, held, clock):
    clock.now = TTL + 1

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    seat = held.seat(11)
    assert stats == {"released_seats": 1, "charts_updated": 1, "charts_failed": 0}
    assert seat.status == SeatStatus.AVAILABLE
    assert seat.session_id is None
    assert seat.session_expiry is None
    assert held.charts[1]["reserved_seats"] == 0


@pytest.mark.asyncio
async def test_sweep_twice_releases_nothing_second_time(mocker, held, clock):
    clock.now = TTL + 1
    factory = session_factory(mocker)

    first = await hold_reclamation_service.release_expired_holds(factory)
    writes = held.charts[1]["writes"]
    second = await hold_reclamation_service.release_expired_holds(factory)

    assert first["released_seats"] == 1
    assert second["released_seats"] == 0
    assert held.charts[1]["writes"] == writes


@pytest.mark.asyncio
async def test_sweep_does_not_touch_charts_without_lapsed_holds(mocker, held, clock):
    held.add_chart(2, [21, 22])
    held.put_hold(21, "sess2-abcd", expiry=5 * TTL)
    held.add_chart(3, [31])
    clock.now = TTL + 1

    await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert held.charts[1]["writes"] == 1
    assert held.charts[2]["writes"] == 0
    assert held.charts[2]["updated_at"] == 0
    assert held.charts[3]["updated_at"] == 0
    assert held.seat(21).status == SeatStatus.RESERVED


@pytest.mark.asyncio
async def test_sweep_leaves_sold_seats_and_live_holds_in_same_chart(mocker, store, clock):
    store.add_chart(1, [11, 12, 13])
    store.put_hold(11, "sess1-abcd", expiry=TTL)
    store.put_hold(12, "sess2-abcd", expiry=3 * TTL)
    store.seats[13]["status"] = SeatStatus.SOLD
    clock.now = 2 * TTL

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert stats["released_seats"] == 1
    assert store.seat(12).status == SeatStatus.RESERVED
    assert store.seat(13).status == SeatStatus.SOLD
    assert store.charts[1]["reserved_seats"] == 1


@pytest.mark.asyncio
async def test_sweep_failing_chart_is_skipped_and_counted(mocker, held, clock, caplog):
    held.add_chart(2, [21])
    held.put_hold(21, "sess2-abcd", expiry=TTL)
    held.failing_charts[1] = OperationalError("UPDATE chart_seats", {}, Exception("connection reset"))
    clock.now = TTL + 1

    with caplog.at_level(logging.INFO, logger="seatkeeper.sweeper"):
        stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert stats == {"released_seats": 1, "charts_updated": 1, "charts_failed": 1}
    assert held.seat(11).status == SeatStatus.RESERVED
    assert held.seat(21).status == SeatStatus.AVAILABLE
    assert "skipping chart_id=1" in caplog.text


@pytest.mark.asyncio
async def test_sweep_logs_released_count(mocker, held, clock, caplog, auditspan_stub):
    held.add_chart(2, [21])
    held.put_hold(21, "sess2-abcd", expiry=TTL)
    held.put_hold(12, "sess3-abcd", expiry=TTL)
    clock.now = TTL + 1

    with caplog.at_level(logging.INFO, logger="seatkeeper.sweeper"):
        await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert "Released 3 expired seat holds across 2 seating charts" in caplog.text
    assert auditspan_stub[-1].action == "SWEEP_LAPSED_HOLDS"
    assert auditspan_stub[-1].meta["released_seats"] == 3


@pytest.mark.asyncio
async def test_sweep_with_nothing_to_do_logs_nothing(mocker, held, clock, caplog):
    clock.now = 10

    with caplog.at_level(logging.INFO, logger="seatkeeper.sweeper"):
        await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert "Released" not in caplog.text


@pytest.mark.asyncio
async def test_sweep_respects_limit(mocker, store, clock):
    for chart_id in (1, 2, 3):
        seat_id = chart_id * 10
        store.add_chart(chart_id, [seat_id])
        store.put_hold(seat_id, f"sess{chart_id}-abcd", expiry=TTL)
    clock.now = TTL + 1

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker), limit=2)

    assert stats["charts_updated"] == 2
    assert store.seat(30).status == SeatStatus.RESERVED


@pytest.mark.asyncio
async def test_sweep_scan_failure_raises_persistence_failure(mocker, clock):
    crud = mocker.patch("seatkeeper.services.hold_reclamation_service.crud")
    crud.list_chart_ids_with_lapsed_holds = mocker.AsyncMock(
        side_effect=OperationalError("SELECT", {}, Exception("down"))
    )

    with pytest.raises(PersistenceFailure):
        await hold_reclamation_service.release_expired_holds(session_factory(mocker))


@pytest.mark.asyncio
async def test_sweep_uses_one_transaction_per_chart(mocker, store, clock):
    store.add_chart(1, [11])
    store.add_chart(2, [21])
    store.put_hold(11, "sess1-abcd", expiry=TTL)
    store.put_hold(21, "sess2-abcd", expiry=TTL)
    clock.now = TTL + 1
    factory = session_factory(mocker)

    await hold_reclamation_service.release_expired_holds(factory)

    # one session for the scan, one per chart
    assert factory.call_count == 3


@pytest.mark.asyncio
async def test_sweep_connection_error_on_one_chart_does_not_stop_the_rest(mocker, held, clock):
    held.add_chart(2, [21])
    held.put_hold(21, "sess2-abcd", expiry=TTL)
    held.failing_charts[1] = ConnectionRefusedError(111, "Connect call failed")
    clock.now = TTL + 1

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    assert stats == {"released_seats": 1, "charts_updated": 1, "charts_failed": 1}
    assert held.seat(21).status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_sweep_scan_connection_error_raises_persistence_failure(mocker, clock):
    crud = mocker.patch("seatkeeper.services.hold_reclamation_service.crud")
    crud.list_chart_ids_with_lapsed_holds = mocker.AsyncMock(side_effect=ConnectionRefusedError(111, "refused"))

    with pytest.raises(PersistenceFailure):
        await hold_reclamation_service.release_expired_holds(session_factory(mocker))


@pytest.mark.asyncio
async def test_hold_extended_between_scan_and_reclaim_survives(mocker, held, clock):
    clock.now = TTL + 1
    new_expiry = clock.now + TTL
    scan = held.list_chart_ids_with_lapsed_holds

    async def scan_then_extend(db, now_ms, limit=None):
        chart_ids = await scan(db, now_ms, limit=limit)
        # the holder's extension commits after the scan has picked the chart
        held.seats[11].update(session_expiry=new_expiry, version=held.seats[11]["version"] + 1)
        return chart_ids

    held.list_chart_ids_with_lapsed_holds = scan_then_extend

    stats = await hold_reclamation_service.release_expired_holds(session_factory(mocker))

    seat = held.seat(11)
    assert stats == {"released_seats": 0, "charts_updated": 0, "charts_failed": 0}
    assert seat.status == SeatStatus.RESERVED
    assert seat.session_id == "sess1-abcd"
    assert seat.session_expiry == new_expiry
    assert held.charts[1]["reserved_seats"] == 1
    assert held.charts[1]["writes"] == 0
