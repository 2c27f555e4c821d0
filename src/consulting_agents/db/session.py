"""Database engine and session factory construction.

Engines are built by the composition root (``main.lifespan``) and passed
down explicitly; nothing here holds module-level state.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from consulting_agents.core.config import Settings
from consulting_agents.db.base import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async database engine for the configured URL.

    Args:
        settings: Application settings.

    Returns:
        SQLAlchemy async engine.
    """
    kwargs: dict[str, Any] = {"echo": settings.database_echo}

    if settings.is_sqlite:
        # In-memory SQLite must share one connection across sessions
        if ":memory:" in settings.database_url:
            kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    logger.info(f"Creating database engine (sqlite={settings.is_sqlite})")
    return create_async_engine(settings.database_url, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create tables directly from metadata.

    Used for SQLite and tests; PostgreSQL deployments run Alembic migrations.
    """
    # Register models on Base.metadata
    from consulting_agents.models import consulting_session  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine(engine: AsyncEngine) -> None:
    """Dispose database connections (call on app shutdown)."""
    await engine.dispose()
