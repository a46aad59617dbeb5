"""Database connection and session management."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from taskmaster.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def _sqlite_lower(value):
    return value.lower() if isinstance(value, str) else value


def configure_sqlite(target_engine: AsyncEngine) -> None:
    """
    Make SQLite behave like the production database for our purposes.

    Foreign keys are off by default in SQLite, and the driver's implicit
    BEGIN handling breaks SAVEPOINTs; both are fixed with connection events.
    The built-in ``lower()`` only folds ASCII, so it is replaced with
    Python's Unicode-aware ``str.lower``.
    """
    sync_engine = target_engine.sync_engine
    if sync_engine.dialect.name != "sqlite":
        return
    if getattr(sync_engine, "_taskmaster_sqlite_configured", False):
        return

    @event.listens_for(sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        dbapi_connection.create_function("lower", 1, _sqlite_lower, deterministic=True)

    @event.listens_for(sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    sync_engine._taskmaster_sqlite_configured = True


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Create an async engine with dialect-specific wiring applied."""
    if database_url.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 20)
        kwargs.setdefault("max_overflow", 10)
    new_engine = create_async_engine(database_url, echo=settings.debug, **kwargs)
    configure_sqlite(new_engine)
    return new_engine


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
