"""Shared test fixtures.

Each test gets a fresh SQLite database (aiosqlite) with the ORM schema and
the reference seed applied. The app runs without its lifespan: the session,
provider HTTP client and Redis are wired through dependency overrides, and
Redis stays uninitialized so rate limiting and badge push fail open.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from gtg.auth.jwt import create_access_token
from gtg.database import get_session
from gtg.db.base import Base
from gtg.db.models import Activity, ActivityType, User
from gtg.events.router import get_provider_client
from gtg.gamification.seed import seed_reference_data
from gtg.main import create_app


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with foreign keys enforced."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gtg_test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        await seed_reference_data(db)
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Direct session for setup and assertions. Commit before calling the API."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider_responses() -> list[httpx.Response | Exception]:
    """Queue of canned provider replies, consumed one per request."""
    return []


@pytest.fixture
def provider_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def provider_client(
    provider_responses: list[httpx.Response | Exception],
    provider_requests: list[httpx.Request],
) -> httpx.AsyncClient:
    """httpx client whose transport replays ``provider_responses``."""

    def handler(request: httpx.Request) -> httpx.Response:
        provider_requests.append(request)
        if not provider_responses:
            return httpx.Response(200, json={"page": {"totalElements": 0}})
        reply = provider_responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    provider_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the test database."""
    app = create_app()

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _get_provider_client() -> httpx.AsyncClient:
        return provider_client

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_provider_client] = _get_provider_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await provider_client.aclose()


# --- Factories ---


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Any]:
    """Create and commit a profile row."""

    async def _make(username: str | None = None, is_private: bool = False) -> User:
        user_id = uuid.uuid4()
        user = User(id=user_id, username=username or f"user_{user_id.hex[:8]}", is_private=is_private)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


async def activity_type_id(db: AsyncSession, name: str) -> int:
    result = await db.execute(select(ActivityType.id).where(ActivityType.name == name))
    return result.scalar_one()


@pytest.fixture
def add_activities(db_session: AsyncSession) -> Callable[..., Any]:
    """Insert activities directly, bypassing the daily cap (history fixtures)."""

    async def _add(user: User, type_name: str, timestamps: list[datetime]) -> list[Activity]:
        type_id = await activity_type_id(db_session, type_name)
        rows = [Activity(user_id=user.id, activity_type_id=type_id, timestamp=ts) for ts in timestamps]
        db_session.add_all(rows)
        await db_session.commit()
        return rows

    return _add


def days_ago(days: int) -> datetime:
    now = datetime.now(timezone.utc)
    return now - timedelta(days=days)
