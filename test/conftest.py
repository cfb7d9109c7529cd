"""
Pytest configuration and fixtures for cookie consent tests
"""

import os
import sys
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read at import time, so the database URL must be in place first
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("LOG_JSON", "false")

import cookie_consent.database as database_module  # noqa: E402
from cookie_consent.database import Base, get_db  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture(scope="function")
async def test_engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps the single connection alive so every session sees the
    same tables.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine, monkeypatch):
    """Session maker bound to the test database, patched in for the app and background jobs."""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database_module, "AsyncSessionLocal", factory)
    return factory


@pytest.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the app in-process against the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
