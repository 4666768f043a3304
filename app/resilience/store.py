"""Versioned key/value store shared by the breaker and the rate limiter.

Every read returns the value with its version; every write names the
version it was computed from and fails if another writer got there
first. Version 0 means "no row yet", so the first insert is a CAS too.
Expired entries read as ``(None, version)`` and may be overwritten with
that version.
"""

import asyncio
import time
from typing import Any, Callable, Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.storage.json_utils import safe_json_dumps, safe_json_loads
from app.storage.models import ControlState

Clock = Callable[[], float]

# Deleting a row resets its version to 0. Rows are only purged long after
# expiry so no in-flight writer can still hold the old version.
PURGE_GRACE_SECONDS = 3600.0


class VersionedStore(Protocol):
    """Compare-and-set store."""

    async def get(self, key: str) -> tuple[dict[str, Any] | None, int]:
        """Return ``(value, version)``; value is None when absent or expired."""
        ...

    async def put_if_version(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int,
        ttl_seconds: float | None = None,
    ) -> bool:
        """Write ``value`` only if the stored version still equals ``expected_version``."""
        ...


class MemoryControlStore:
    """In-process store for single-instance deployments and tests."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[dict[str, Any], int, float | None]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> tuple[dict[str, Any] | None, int]:
        entry = self._data.get(key)
        if entry is None:
            return None, 0
        value, version, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            return None, version
        return dict(value), version

    async def put_if_version(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int,
        ttl_seconds: float | None = None,
    ) -> bool:
        async with self._lock:
            current = self._data.get(key)
            current_version = current[1] if current else 0
            if current_version != expected_version:
                return False
            expires_at = self._clock() + ttl_seconds if ttl_seconds else None
            self._data[key] = (dict(value), current_version + 1, expires_at)
            return True

    async def purge_expired(self, grace_seconds: float = PURGE_GRACE_SECONDS) -> int:
        cutoff = self._clock() - grace_seconds
        expired = [k for k, (_, _, exp) in self._data.items() if exp is not None and exp <= cutoff]
        for key in expired:
            del self._data[key]
        return len(expired)


class SqlControlStore:
    """Store backed by the ``control_state`` table.

    Each call uses its own short-lived session so an aborted write never
    leaves a transaction open for the next caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = time.time,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def get(self, key: str) -> tuple[dict[str, Any] | None, int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ControlState.value, ControlState.version, ControlState.expires_at).where(
                    ControlState.key == key
                )
            )
            row = result.first()
        if row is None:
            return None, 0
        value, version, expires_at = row
        if expires_at is not None and self._clock() >= expires_at:
            return None, version
        return safe_json_loads(value), version

    async def put_if_version(
        self,
        key: str,
        value: dict[str, Any],
        expected_version: int,
        ttl_seconds: float | None = None,
    ) -> bool:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        payload = safe_json_dumps(value)

        async with self._session_factory() as session:
            if expected_version == 0:
                session.add(
                    ControlState(key=key, value=payload, version=1, expires_at=expires_at)
                )
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return False
                return True

            result = await session.execute(
                update(ControlState)
                .where(ControlState.key == key)
                .where(ControlState.version == expected_version)
                .values(value=payload, version=expected_version + 1, expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def purge_expired(self, grace_seconds: float = PURGE_GRACE_SECONDS) -> int:
        """Delete rows that expired more than ``grace_seconds`` ago."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(ControlState)
                .where(ControlState.expires_at.is_not(None))
                .where(ControlState.expires_at <= self._clock() - grace_seconds)
            )
            await session.commit()
            return result.rowcount or 0
