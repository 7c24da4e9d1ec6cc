"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from config.settings import settings
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_ledger.infrastructure.broadcast import InProcessBroadcaster
from tests.fakes import InMemoryGateway, RecordingSink, make_ledger, make_roster


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway(make_roster(40, 25, 10))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def ledger(gateway: InMemoryGateway, sink: RecordingSink) -> MarketLedger:
    ledger = make_ledger(gateway, sink)
    await ledger.initialize()
    return ledger


@pytest.fixture
def broadcaster() -> InProcessBroadcaster:
    return InProcessBroadcaster(queue_size=10)


@pytest.fixture
async def app_ledger(broadcaster: InProcessBroadcaster) -> MarketLedger:
    """Ledger on the default roster, as the app runs it after a fresh start."""
    ledger = make_ledger(InMemoryGateway(), broadcaster)
    await ledger.initialize()
    return ledger


@pytest.fixture
async def client(
    monkeypatch: pytest.MonkeyPatch,
    app_ledger: MarketLedger,
    broadcaster: InProcessBroadcaster,
) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints (lifespan not run)."""
    from src.main import app
    from src.pm_ledger.api.dependencies import get_broadcaster, get_ledger

    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    app.dependency_overrides[get_ledger] = lambda: app_ledger
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
