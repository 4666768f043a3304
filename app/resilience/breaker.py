"""Circuit breaker around the generation service.

State lives in a versioned store so every worker sees the same breaker.
All transitions are compare-and-set: read state and version, compute the
next state, write only if the version is unchanged, retry on conflict.

    CLOSED --(failures >= threshold)--> OPEN
    OPEN --(cooldown elapsed, CAS winner)--> HALF_OPEN (single trial)
    HALF_OPEN --(trial succeeds)--> CLOSED
    HALF_OPEN --(trial fails)--> OPEN (cooldown restarts)

A trial that never reports back (crashed worker) is reclaimed after
``trial_timeout_seconds``.
"""

import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from app.core.contracts import Err, Ok
from app.errors import BreakerOpenError
from app.logging import get_logger
from app.resilience.store import Clock, VersionedStore

logger = get_logger(__name__)

T = TypeVar("T")


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Persisted breaker state."""

    state: BreakerState = BreakerState.CLOSED
    failures: int = 0
    opened_at: float | None = None
    trial_id: str | None = None
    trial_started_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BreakerSnapshot":
        if not data:
            return cls()
        try:
            return cls(
                state=BreakerState(data.get("state", "closed")),
                failures=int(data.get("failures", 0)),
                opened_at=data.get("opened_at"),
                trial_id=data.get("trial_id"),
                trial_started_at=data.get("trial_started_at"),
            )
        except (ValueError, TypeError):
            logger.warning(f"Unreadable breaker state {data!r}, treating as closed")
            return cls()


class CircuitBreaker:
    """Shared circuit breaker.

    Args:
        name: Breaker name, used as the store key suffix
        store: Versioned store holding the state
        threshold: Consecutive failures that trip the breaker
        cooldown_seconds: Time spent OPEN before a trial is allowed
        trial_timeout_seconds: Age after which an unreported trial is reclaimed
        max_retries: CAS attempts per transition
        clock: Time source (epoch seconds)
    """

    def __init__(
        self,
        name: str,
        store: VersionedStore,
        threshold: int = 5,
        cooldown_seconds: float = 60.0,
        trial_timeout_seconds: float = 120.0,
        max_retries: int = 5,
        clock: Clock = time.time,
    ) -> None:
        self.name = name
        self.store = store
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self.trial_timeout_seconds = trial_timeout_seconds
        self.max_retries = max_retries
        self._clock = clock
        self._key = f"breaker:{name}"
        self._pending: set[asyncio.Task] = set()

    async def snapshot(self) -> BreakerSnapshot:
        value, _ = await self.store.get(self._key)
        return BreakerSnapshot.from_dict(value)

    async def reset(self) -> None:
        """Force the breaker closed (admin operation)."""
        for _ in range(self.max_retries):
            _, version = await self.store.get(self._key)
            if await self.store.put_if_version(self._key, BreakerSnapshot().to_dict(), version):
                logger.info(f"Circuit breaker '{self.name}' reset to closed")
                return
        logger.warning(f"Circuit breaker '{self.name}' reset lost every CAS attempt")

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> Ok[T] | Err:
        """Run ``operation`` if the breaker admits it.

        The outcome is recorded even if the caller stops waiting: the call
        runs in its own task and the caller only awaits a shielded view of it.

        Returns:
            Ok with the operation's value, or Err with BreakerOpenError or
            the exception the operation raised
        """
        try:
            trial_id = await self._admit()
        except BreakerOpenError as e:
            return Err(e)

        task = asyncio.ensure_future(self._run(operation, trial_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    async def _run(self, operation: Callable[[], Awaitable[T]], trial_id: str | None) -> Ok[T] | Err:
        try:
            value = await operation()
        except asyncio.CancelledError:
            await self._record(success=False, trial_id=trial_id)
            raise
        except Exception as e:
            await self._record(success=False, trial_id=trial_id)
            return Err(e)
        await self._record(success=True, trial_id=trial_id)
        return Ok(value)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def _admit(self) -> str | None:
        """Decide whether a call may proceed.

        Returns:
            None for an ordinary call while CLOSED, or the trial ID when
            this caller won the HALF_OPEN trial

        Raises:
            BreakerOpenError: If the call must be short-circuited
        """
        try:
            return await self._admit_cas()
        except SQLAlchemyError as e:
            # Without shared state the safe default is to let the call through
            logger.warning(f"Circuit breaker '{self.name}' store unavailable, admitting: {e}")
            return None

    async def _admit_cas(self) -> str | None:
        for _ in range(self.max_retries):
            value, version = await self.store.get(self._key)
            snap = BreakerSnapshot.from_dict(value)
            now = self._clock()

            if snap.state == BreakerState.CLOSED:
                return None

            if snap.state == BreakerState.OPEN:
                elapsed = now - (snap.opened_at or 0.0)
                if elapsed < self.cooldown_seconds:
                    raise BreakerOpenError(self.name, self.cooldown_seconds - elapsed)
            else:
                trial_age = now - (snap.trial_started_at or 0.0)
                if trial_age < self.trial_timeout_seconds:
                    raise BreakerOpenError(self.name, self.trial_timeout_seconds - trial_age)
                logger.warning(f"Circuit breaker '{self.name}' reclaiming stale trial {snap.trial_id}")

            trial_id = uuid.uuid4().hex
            trial = replace(
                snap,
                state=BreakerState.HALF_OPEN,
                trial_id=trial_id,
                trial_started_at=now,
            )
            if await self.store.put_if_version(self._key, trial.to_dict(), version):
                logger.info(f"Circuit breaker '{self.name}' half-open, trial {trial_id}")
                return trial_id
            # Lost the race: re-read and most likely find HALF_OPEN

        logger.warning(f"Circuit breaker '{self.name}' admission lost every CAS attempt")
        raise BreakerOpenError(self.name, 1.0)

    # ------------------------------------------------------------------
    # Outcome recording
    # ------------------------------------------------------------------

    def _next_state(
        self, snap: BreakerSnapshot, success: bool, trial_id: str | None, now: float
    ) -> BreakerSnapshot | None:
        """Compute the state after an outcome, or None when nothing changes."""
        if trial_id is not None:
            if snap.state != BreakerState.HALF_OPEN or snap.trial_id != trial_id:
                # Trial was reclaimed or the breaker was reset meanwhile
                return None
            if success:
                return BreakerSnapshot()
            return BreakerSnapshot(
                state=BreakerState.OPEN, failures=snap.failures, opened_at=now
            )

        if snap.state != BreakerState.CLOSED:
            # Late result of a call admitted before the trip
            return None
        if success:
            return replace(snap, failures=0) if snap.failures else None

        failures = snap.failures + 1
        if failures >= self.threshold:
            return BreakerSnapshot(state=BreakerState.OPEN, failures=failures, opened_at=now)
        return replace(snap, failures=failures)

    async def _record(self, success: bool, trial_id: str | None) -> None:
        try:
            await self._record_cas(success, trial_id)
        except SQLAlchemyError as e:
            logger.warning(f"Circuit breaker '{self.name}' failed to record outcome: {e}")

    async def _record_cas(self, success: bool, trial_id: str | None) -> None:
        for _ in range(self.max_retries):
            value, version = await self.store.get(self._key)
            snap = BreakerSnapshot.from_dict(value)
            new = self._next_state(snap, success, trial_id, self._clock())
            if new is None:
                return
            if await self.store.put_if_version(self._key, new.to_dict(), version):
                self._log_transition(snap, new)
                return

        logger.warning(f"Circuit breaker '{self.name}' outcome lost every CAS attempt")

    def _log_transition(self, old: BreakerSnapshot, new: BreakerSnapshot) -> None:
        if old.state == new.state:
            return
        if new.state == BreakerState.OPEN:
            logger.warning(
                f"Circuit breaker '{self.name}' opened after {new.failures} failures"
                if old.state == BreakerState.CLOSED
                else f"Circuit breaker '{self.name}' trial failed, reopening"
            )
        elif new.state == BreakerState.CLOSED:
            logger.info(f"Circuit breaker '{self.name}' closed")
