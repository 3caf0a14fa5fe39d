"""
Shared test fixtures for the QueueKill test suite.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool)
and a notifier whose emitter records events instead of sending them.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["FRONTEND_URL"] = "http://frontend.test"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from queuekill.api.deps import get_db
from queuekill.db.base import Base
from queuekill.main import app
from queuekill.realtime.notifier import QueueNotifier
from queuekill.realtime.registry import RoomRegistry

API = "/api"


class RecordingEmitter:
    """Stands in for the Socket.IO server; keeps every emitted event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict, str]] = []

    async def emit(self, event, data=None, *, to=None):
        self.events.append((event, data, to))

    def to(self, sid: str) -> list[tuple[str, dict]]:
        return [(event, data) for event, data, target in self.events if target == sid]

    def named(self, event_name: str) -> list[tuple[dict, str]]:
        return [(data, target) for event, data, target in self.events if event == event_name]


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database per test; tables created up front and dropped after."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def notifier(emitter, registry) -> QueueNotifier:
    return QueueNotifier(emitter, registry)


@pytest.fixture
async def async_client(session_factory, notifier) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    original_notifier = app.state.notifier
    app.state.notifier = notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.state.notifier = original_notifier
    app.dependency_overrides.clear()


# ── Helpers ─────────────────────────────────────────────────────────
def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register_owner(
    client: AsyncClient,
    email: str = "owner@example.com",
    restaurant_name: str = "Luigi's Trattoria",
    queue_name: str | None = "Main Queue",
) -> dict:
    body = {
        "email": email,
        "password": "secret123",
        "name": "Olivia Owner",
        "restaurantName": restaurant_name,
        "restaurantAddress": "12 Harbour Street",
    }
    if queue_name is not None:
        body["initialQueueName"] = queue_name
    resp = await client.post(f"{API}/auth/register-owner", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def register_customer(
    client: AsyncClient,
    email: str = "customer@example.com",
    name: str = "Casey Customer",
) -> dict:
    resp = await client.post(
        f"{API}/auth/register-customer",
        json={"email": email, "password": "secret123", "name": name},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
