"""
Pytest configuration and fixtures for testing
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from config.settings import settings
from database import Base, get_db, get_session_factory

TEST_JWT_SECRET = "test-secret-key-for-pantry-vault-tests"

# In-memory SQLite for repository and service tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db():
    """
    Fixture that provides an isolated, in-memory SQLite database session for each test.

    Tables are created before the test runs and the engine is disposed afterwards.
    """
    import database_models  # noqa: F401

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with _session_factory(engine)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    await engine.dispose()


@pytest.fixture
async def db_sessions(tmp_path):
    """
    Session factory over a file-backed SQLite database, for tests that need
    several independent sessions (and connections) on the same data.
    """
    import database_models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield _session_factory(engine)
    await engine.dispose()


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "jwt_secret_key", TEST_JWT_SECRET)
    return TEST_JWT_SECRET


@pytest.fixture
def api_db(tmp_path):
    """
    File-backed SQLite shared between the test and the app under TestClient.
    NullPool: the app runs on TestClient's own event loop, so no connection is reused across loops.
    """
    import database_models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    session_factory = _session_factory(engine)

    async def setup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(setup())
    yield session_factory
    asyncio.run(engine.dispose())


@pytest.fixture
def create_user(api_db):
    """Insert a user outside the app and return its id."""
    from crud.user import UserRepository

    def _create(**fields):
        async def insert():
            async with api_db() as session:
                user = await UserRepository(session).create_user({"email": "cook@example.com", **fields})
                await session.commit()
                return user.id

        return asyncio.run(insert())

    return _create


@pytest.fixture
def client(api_db, jwt_secret):
    """FastAPI TestClient fixture with test database override"""
    from main import app

    async def override_get_db():
        async with api_db() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: api_db
    yield TestClient(app)
    app.dependency_overrides.clear()
