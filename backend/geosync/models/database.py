"""
Async engine and sessions for the PostGIS feature store.

``engine`` is built once from ``Settings``.  Every pooled connection
carries a server-side ``statement_timeout``, so a stuck spatial query
fails as a ``SQLAlchemyError`` (a 503 at the HTTP layer) instead of
holding the request open.

``get_db`` gives each request its own ``AsyncSession``.  Sessions never
auto-commit: ``SpatialStore`` commits every mutation itself, one feature
per transaction.  Anything raised while the session is open rolls it
back before propagating, and the session is always closed.

``check_postgis`` and ``init_models`` run once from the application
lifespan.  The first fails fast when the database lacks PostGIS; the
second creates the ``features`` table and its GIST index if missing.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from geosync.config import Settings, get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(cfg: Settings) -> AsyncEngine:
    """asyncpg engine with connect and statement timeouts from ``cfg``."""
    timeout_ms = int(cfg.query_timeout_s * 1000)
    return create_async_engine(
        cfg.database_url,
        echo=cfg.debug,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
        connect_args={
            "timeout": cfg.query_timeout_s,
            "server_settings": {"statement_timeout": str(timeout_ms)},
        },
    )


engine = build_engine(settings)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the feature tables."""


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: one session per request, rolled back on error."""
    session = async_session_factory()
    try:
        yield session
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Database error, session rolled back: %s", exc, exc_info=True)
        raise
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def check_postgis() -> str:
    """Return the PostGIS version string; raises if the extension is absent."""
    async with engine.begin() as conn:
        result = await conn.execute(text("SELECT PostGIS_Version()"))
        version = result.scalar()
    logger.info("PostGIS connected (version=%s)", version)
    return version


async def init_models() -> None:
    """
    ``CREATE TABLE IF NOT EXISTS`` for every model on ``Base.metadata``.

    Model modules must be imported first so the metadata is populated.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
