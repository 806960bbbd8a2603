"""
Database configuration and session management.
Uses SQLAlchemy 2.0 asyncio engines and sessions.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config.settings import Settings, get_settings
from shared.config.logging import get_logger

import os

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _calculate_pool_size(configured: int) -> int:
    """
    Calculate pool size based on CPU cores.
    Formula: (2 * CPU cores) + 1, capped at the configured size.
    """
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, configured)


def _engine_kwargs(config: Settings) -> dict[str, Any]:
    """Build engine keyword arguments for the configured backend."""
    kwargs: dict[str, Any] = {
        "echo": config.sql_echo,
        "pool_pre_ping": True,  # Verify connections before using
    }
    if config.is_sqlite:
        # SQLite pools are managed by the dialect
        return kwargs

    kwargs.update(
        pool_size=_calculate_pool_size(config.db_pool_size),
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_recycle=config.db_pool_recycle,
    )
    return kwargs


def create_engine_from_settings(config: Settings | None = None) -> AsyncEngine:
    """Create an async engine from settings (defaults to the cached settings)."""
    config = config or get_settings()
    return create_async_engine(config.database_url, **_engine_kwargs(config))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create a session factory bound to ``engine``.

    expire_on_commit is disabled: entities handed back to callers must stay
    readable after commit without another round trip.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    """Get (lazily creating) the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings()
        logger.info("Database engine created", url=_engine.url.render_as_string(hide_password=True))
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get (lazily creating) the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for one unit of work.

    Usage:
        async with get_db_context() as session:
            repo = GenericRepository(Patient, session, caller)
            await repo.get_all(BaseFilters(tenant_id=1))

    The session is automatically closed when the block exits.
    """
    session = get_session_factory()()
    try:
        yield session
    finally:
        await session.close()


async def safe_commit(session: AsyncSession) -> None:
    """
    Safe commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise
