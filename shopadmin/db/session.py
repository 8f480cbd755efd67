"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) gets a sized connection pool; SQLite (aiosqlite,
used by the test suite and local runs) keeps the driver's own pooling.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shopadmin.core.config import Settings, settings


def engine_options(config: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` derived from *config*."""
    options: dict[str, Any] = {"echo": config.DB_ECHO}
    backend = make_url(config.DATABASE_URL).get_backend_name()

    if backend == "postgresql":
        options.update(
            pool_pre_ping=True,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_recycle=config.DB_POOL_RECYCLE_SECONDS,
        )
    elif backend == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
