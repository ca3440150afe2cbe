import pytest
from seatkeeper.scripts import seed_seating_chart


def test_ballroom_layout_has_eight_tables_of_eight():
    layout = seed_seating_chart.ballroom_layout(3)

    tables = layout.sections[0].tables
    assert layout.event_id == 3
    assert len(tables) == 8
    assert all(len(t.seats) == 8 for t in tables)


@pytest.mark.asyncio
async def test_seed_skips_existing_chart(mocker):
    existing = mocker.Mock()
    mocker.patch(
        "seatkeeper.scripts.seed_seating_chart.crud.get_chart_by_event",
        new=mocker.AsyncMock(return_value=existing)
    )
    create_spy = mocker.patch("seatkeeper.scripts.seed_seating_chart.create_chart", new=mocker.AsyncMock())

    chart, created = await seed_seating_chart.seed_seating_chart(mocker.Mock(), 3)

    assert chart is existing
    assert created is False
    create_spy.assert_not_awaited()


@pytest.mark.asyncio
async def test_seed_creates_missing_chart(mocker):
    mocker.patch(
        "seatkeeper.scripts.seed_seating_chart.crud.get_chart_by_event",
        new=mocker.AsyncMock(return_value=None)
    )
    chart = mocker.Mock()
    create_spy = mocker.patch(
        "seatkeeper.scripts.seed_seating_chart.create_chart",
        new=mocker.AsyncMock(return_value=chart)
    )
    db = mocker.Mock()

    result, created = await seed_seating_chart.seed_seating_chart(db, 3)

    assert result is chart
    assert created is True
    assert create_spy.await_args.args[1].name == "Main Ballroom"
