import pytest
import importlib


SERVICE_MODULES = [
    "seatkeeper.services.hold_service",
    "seatkeeper.services.hold_reclamation_service",
    "seatkeeper.services.seating_chart_service",
]

class _StubSpan:
    def __init__(
        self,
        *,
        scope: str,
        action: str,
        object_type: str | None = None,
        object_id: int | None = None,
        chart_id: int | None = None,
        session_id: str | None = None,
        meta: dict | None = None,
        **_ignored
    ):
        self.scope = scope
        self.action = action
        self.object_type = object_type
        self.object_id = object_id
        self.chart_id = chart_id
        self.session_id = session_id
        self.meta = dict(meta or {})
        self.entered = False
        self.exited = False
        self.exit_args = None

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True
        self.exit_args = (exc_type, exc, tb)
        return False


@pytest.fixture(autouse=True)
def auditspan_stub(mocker, request):
    instances = []

    def factory(*a, **k):
        s = _StubSpan(*a, **k)
        instances.append(s)
        return s

    for mod in SERVICE_MODULES:
        importlib.import_module(mod)
        mocker.patch(f"{mod}.AuditSpan", side_effect=factory)

    return instances


@pytest.fixture
def clock(mocker):
    from tests.helper import FakeClock

    fake = FakeClock()
    mocker.patch("seatkeeper.services.hold_service.now_ms", new=fake)
    mocker.patch("seatkeeper.services.hold_reclamation_service.now_ms", new=fake)
    return fake


@pytest.fixture
def store(mocker):
    from tests.helper import InMemorySeatStore

    fake = InMemorySeatStore()
    mocker.patch("seatkeeper.services.hold_service.crud", new=fake)
    mocker.patch("seatkeeper.services.hold_reclamation_service.crud", new=fake)
    return fake
