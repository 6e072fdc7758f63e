"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application.  The connection string comes from
``settings.DATABASE_URL`` and defaults to a local SQLite file
(``receipts.db``).  Plain ``sqlite://`` URLs are upgraded to the
``aiosqlite`` driver so the same value works for sync tooling and the
async engine.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from receipt_scanner.core.config import settings

logger = logging.getLogger(__name__)


def normalise_database_url(raw_url: str) -> str:
    """Return ``raw_url`` with a driver usable by the async engine."""
    url_obj = make_url(raw_url)
    if url_obj.drivername == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    return url_obj.render_as_string(hide_password=False)


db_url = normalise_database_url(settings.DATABASE_URL)

engine_kwargs: dict[str, Any] = dict(echo=settings.DATABASE_ECHO, pool_pre_ping=True)
connect_args: dict[str, Any] = {}
if db_url.startswith("sqlite"):
    # SQLite connections are shared across the threads aiosqlite spawns
    connect_args["check_same_thread"] = False

engine = create_async_engine(db_url, connect_args=connect_args, **engine_kwargs)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session.

    This function is intended for FastAPI dependency injection.  Each
    session is scoped to the request and closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables.

    Creates all tables defined on the declarative ``Base``.  Called from
    the FastAPI lifespan and from ``scripts/init_db.py``.
    """
    async with engine.begin() as conn:
        # Import all models to ensure metadata is populated
        from receipt_scanner.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready (%s)", get_db_debug_info().get("url"))


async def ping_database(session: AsyncSession) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.error("Database ping failed: %s", exc)
        return False


def get_db_debug_info() -> Dict[str, Any]:
    """Return non-sensitive information about the current DB engine.

    This avoids leaking passwords or secrets.
    """
    info: Dict[str, Any] = {"environment": settings.ENVIRONMENT}
    try:
        url_obj = make_url(db_url)
        info.update(
            {
                "drivername": url_obj.drivername,
                "host": url_obj.host,
                "database": url_obj.database,
                "url": url_obj.render_as_string(hide_password=True),
            }
        )
    except Exception as ex:
        info.update({"error": f"unable to parse engine url: {ex}"})
    return info
