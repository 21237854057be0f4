"""Pytest configuration and fixtures for Mehustaja tests.

Every test gets its own SQLite database file so that services can commit
for real (events are published after commit) without tests leaking rows
into each other.  The event bus, SMS notifier and printer are replaced
through ``app.dependency_overrides``.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import mehustaja.models  # noqa: F401  (register mappers)
from mehustaja.adapters.printer import PrintOutcome, PrintResult
from mehustaja.adapters.sms import SmsNotifier
from mehustaja.database import Base, get_db
from mehustaja.deps import get_event_bus, get_notifier, get_printer
from mehustaja.events.bus import Event, InMemoryEventBus
from mehustaja.main import app
from mehustaja.schemas.customer import CustomerIn
from mehustaja.schemas.order import OrderIntakeRequest
from mehustaja.services.intake import register_order


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mehustaja.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and calling services directly."""
    async with session_factory() as session:
        yield session


# ── Collaborators ────────────────────────────────────────────────

class RecordingNotifier(SmsNotifier):
    """SmsNotifier that records messages instead of calling Twilio."""

    def __init__(self, succeed: bool = True):
        super().__init__("ACtest", "token", "+15550000000")
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []

    async def send_sms(self, phone: str, message: str) -> bool:
        if not phone or not self.succeed:
            return False
        self.sent.append((phone, message))
        return True


class StubPrinter:
    """Printer double returning a fixed outcome."""

    def __init__(self, outcome: PrintOutcome = PrintOutcome.CONFIRMED):
        self.outcome = outcome
        self.jobs: list[tuple[str, str]] = []

    async def print_pouch(self, customer: str, production_date: str) -> PrintResult:
        self.jobs.append((customer, production_date))
        result = PrintResult(outcome=self.outcome, host="printer.test", port=3003)
        result.sent["sla"] = f"SLA|Mehustaja|VarField01={customer}|VarField02={production_date}|"
        if self.outcome is PrintOutcome.FAILED:
            result.error = "connect timeout to printer.test:3003"
        return result


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def recorded_events(event_bus) -> list[Event]:
    """Every event published on ``event_bus`` during the test."""
    received: list[Event] = []

    async def record(event: Event) -> None:
        received.append(event)

    event_bus.subscribe(record)
    return received


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def printer() -> StubPrinter:
    return StubPrinter()


@pytest_asyncio.fixture
async def client(session_factory, event_bus, notifier, printer) -> AsyncGenerator[AsyncClient, None]:
    """Test client; each request gets its own session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_printer] = lambda: printer

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

async def create_order(
    session: AsyncSession,
    pouches: int = 17,
    name: str = "Aino Virtanen",
    phone: str | None = "+358401234567",
):
    """Register an order through the intake service (commits)."""
    body = OrderIntakeRequest(
        customer=CustomerIn(name=name, phone=phone, city="Tampere"),
        total_pouches=pouches,
    )
    return await register_order(body, session)


@pytest.fixture
def order_factory(db_session):
    async def make(pouches: int = 17, name: str = "Aino Virtanen", phone: str | None = "+358401234567"):
        return await create_order(db_session, pouches=pouches, name=name, phone=phone)
    return make


@pytest_asyncio.fixture
async def pending_order(db_session):
    """17 pouches → three crates (8, 8, 1)."""
    return await create_order(db_session)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "integration: Integration tests")
