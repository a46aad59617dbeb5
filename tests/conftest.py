"""
Pytest fixtures for TaskMaster tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Ensure test config is set before importing taskmaster modules.
os.environ.setdefault("TASKMASTER_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("TASKMASTER_ENV", "development")
os.environ.setdefault("TASKMASTER_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from taskmaster.db.base import Base, build_engine
from taskmaster.db.tokens import CounterTokenIssuer
from taskmaster.engine import TaskMasterEngine
import taskmaster.db.tables  # noqa: F401


class TickingClock:
    """Deterministic clock that advances a fixed step on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
async def engine(tmp_path):
    """Create a file-backed SQLite engine and wire it into taskmaster.db.base."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskmaster.db'}")

    from taskmaster.db import base as db_base

    original_engine = db_base.engine
    original_factory = db_base.async_session_factory
    db_base.engine = engine
    db_base.async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    db_base.engine = original_engine
    db_base.async_session_factory = original_factory
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Provide a database session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def task_engine(session, clock):
    """Engine bound to the test session with deterministic time and tokens."""
    return TaskMasterEngine(session, token_issuer=CounterTokenIssuer(), clock=clock)


@pytest.fixture
async def client(engine):
    """Async test client; requests use the test engine through the session factory."""
    from taskmaster.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
