# tests/conftest.py
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shrnq.core.config import Settings
from shrnq.db import base  # noqa: F401  (registers all models on Base.metadata)
from shrnq.db.base_class import Base
from shrnq.db.kv import KVStore, get_kv_store
from shrnq.db.session import get_async_session
from shrnq.main import create_app
from tests.utils.memory_kv import InMemoryKVStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        SESSION_SECRET="test-session-secret",
        HONEYPOT_SECRET="test-honeypot-secret",
        DATABASE_URL=TEST_DATABASE_URL,
        RATE_LIMIT_ENABLED=False,
        BASE_URL="",
        WEBAUTHN_RP_ID="",
        WEBAUTHN_ORIGIN="",
    )


@pytest.fixture
def kv_store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Creates/Disposes an in-memory engine FOR EACH TEST FUNCTION."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yields a database session per function, using the function-scoped engine."""
    TestSessionFactory = async_sessionmaker(
        test_engine, expire_on_commit=False, class_=AsyncSession
    )
    async with TestSessionFactory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest_asyncio.fixture(scope="function")
async def test_client(
    app: FastAPI, db_session: AsyncSession, kv_store: InMemoryKVStore
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient over ASGITransport. The lifespan does not run, so the
    database session and the KV store are injected through dependency overrides.
    """

    async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_kv_store() -> KVStore:
        return kv_store

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_kv_store] = override_get_kv_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
