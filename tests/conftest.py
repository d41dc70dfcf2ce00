"""Shared test fixtures.

Tests run against a throwaway SQLite file per test, created from the ORM
metadata. Redis is disabled; publishers get a mock where a test needs one.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.config import get_settings
from mastery.database import close_db, get_engine, get_session_factory, init_db
from mastery.db import models  # noqa: F401
from mastery.db.base import Base
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.catalog import AchievementCatalog, load_default_catalog


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'mastery.db'}"


@pytest.fixture
def settings_env(monkeypatch, database_url):
    """Point settings at the temp database with Redis disabled."""
    monkeypatch.setenv("MASTERY_DATABASE_URL", database_url)
    monkeypatch.setenv("MASTERY_REDIS_ENABLED", "false")
    monkeypatch.setenv("MASTERY_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database(database_url) -> AsyncGenerator[None, None]:
    """Initialized engine with all tables created."""
    await init_db(database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def other_session(database) -> AsyncGenerator[AsyncSession, None]:
    """A second, independent session on the same database."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def catalog() -> AchievementCatalog:
    return load_default_catalog()


@pytest.fixture
def mock_redis() -> MagicMock:
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def engine(db_session: AsyncSession, catalog: AchievementCatalog) -> AchievementEngine:
    return AchievementEngine(db_session, catalog)


@pytest_asyncio.fixture
async def client(settings_env, database, catalog) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the catalog synced into the temp database."""
    from mastery.main import create_app, prepare_catalog

    app = create_app(catalog)
    await prepare_catalog(catalog, "sync")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-Id": "user-1"}
