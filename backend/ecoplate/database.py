"""
EcoPlate Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   An async engine is built from settings.database_url; every request
       gets its own session that commits on success and rolls back on error.
Who:   Route handlers receive sessions via Depends(get_db_session).
When:  Engine is created at module import; sessions are created per-request.

Supported URLs:
    sqlite+aiosqlite:///./ecoplate.db     (default, single file)
    postgresql+asyncpg://user:pw@host/db  (pooled)
"""

from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ecoplate.config import settings


def _engine_options() -> Dict[str, Any]:
    """Pool options for server databases; SQLite uses SQLAlchemy's defaults."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """
    Create an async engine. For SQLite every new DBAPI connection gets
    foreign key enforcement, and transactions are opened with an explicit
    BEGIN so that SAVEPOINT (session.begin_nested) works.
    """
    options = _engine_options() if url == settings.database_url else {}
    options.update(overrides)
    new_engine = create_async_engine(url, **options)

    if url.startswith("sqlite"):
        @event.listens_for(new_engine.sync_engine, "connect")
        def _configure_sqlite_connection(dbapi_connection, connection_record):
            # The driver's implicit BEGIN breaks SAVEPOINT; we emit BEGIN ourselves
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(new_engine.sync_engine, "begin")
        def _begin_sqlite_transaction(conn):
            conn.exec_driver_sql("BEGIN")

    return new_engine


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = build_engine(settings.database_url)

# expire_on_commit=False: attributes stay readable after the request commits
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def init_models(target_engine: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables that do not exist yet.

    Used on startup outside production (production runs `alembic upgrade head`)
    and by the test suite against an in-memory database.
    """
    # Registers every model class with Base.metadata
    import ecoplate.models  # noqa: F401

    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections. Called during application shutdown."""
    await engine.dispose()
