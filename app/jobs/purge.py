"""Remove expired sessions, cache entries and control-store rows.

Runs every ``PURGE_INTERVAL_MINUTES``. Reads already treat expired rows as
absent, so this job only reclaims space.
"""

import time

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.logging import get_logger

logger = get_logger(__name__)


async def run_purge_expired(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    now: float | None = None,
) -> dict:
    """Purge expired state.

    Returns:
        Summary dict with rows removed per table.
    """
    from app.resilience.store import SqlControlStore
    from app.storage import CacheRepo, SessionsRepo, get_session_factory

    session_factory = session_factory or get_session_factory()
    now = time.time() if now is None else now

    async with session_factory() as session:
        sessions_removed = await SessionsRepo(session).purge_expired(now)
        cache_removed = await CacheRepo(session).purge_expired(now)

    control_removed = await SqlControlStore(session_factory, clock=lambda: now).purge_expired()

    summary = {
        "sessions": sessions_removed,
        "cache": cache_removed,
        "control_state": control_removed,
    }
    logger.info(f"Purge complete: {summary}")
    return summary
