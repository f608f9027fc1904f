"""Async engine and session factory shared by the clinic session server.

One ``AsyncEngine`` backs every request: ``clinic_server.dependencies.get_db``
opens a short-lived ``AsyncSession`` per request from the factory below, and
the health probe borrows a raw connection.  Sessions keep attributes loaded
after commit (``expire_on_commit=False``) so routes can serialize the rows the
service returned without another round trip.

Pool sizing is read from ``PG_POOL_SIZE`` / ``PG_MAX_OVERFLOW`` when the engine
is first built; ``pool_pre_ping`` drops connections the database closed while
the pool sat idle.  ``dispose_engine()`` runs from the app lifespan on shutdown
and resets both singletons, so the next call rebuilds them.
"""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clinic_db.config import get_async_url

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _pool_options() -> dict:
    return {
        "pool_size": int(os.getenv("PG_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("PG_MAX_OVERFLOW", "10")),
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, building it on first use."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(get_async_url(), echo=False, **_pool_options())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the per-request session factory bound to ``get_engine()``."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine (app shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
