"""Fixed-window rate limiter keyed by client identity.

Each client gets its own window row in the versioned store, so one busy
client never touches another client's counter. A window starts with the
client's first request and lasts ``window_ms``.
"""

import math
import time
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from app.logging import get_logger
from app.resilience.store import Clock, VersionedStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of an admission check."""

    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0
    reset_at: float = 0.0


class RateLimiter:
    """Per-client admission control.

    Args:
        store: Versioned store holding the windows
        limit: Requests allowed per window
        window_ms: Window length in milliseconds
        max_retries: CAS attempts per check
        clock: Time source (epoch seconds)
    """

    def __init__(
        self,
        store: VersionedStore,
        limit: int = 60,
        window_ms: int = 60_000,
        max_retries: int = 5,
        clock: Clock = time.time,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_ms = window_ms
        self.max_retries = max_retries
        self._clock = clock

    def _allow_unchecked(self, reason: str, client_key: str) -> RateLimitDecision:
        logger.warning(f"Rate limiter failing open: {reason}", extra={"client_key": client_key})
        return RateLimitDecision(allowed=True, limit=self.limit, remaining=self.limit)

    async def check_limit(self, client_key: str) -> RateLimitDecision:
        """Count one request for ``client_key`` and decide whether to admit it.

        Store failures and CAS exhaustion admit the request: an unavailable
        limiter should not take the service down with it.
        """
        key = f"ratelimit:{client_key}"
        window_seconds = self.window_ms / 1000

        try:
            for _ in range(self.max_retries):
                value, version = await self.store.get(key)
                now = self._clock()

                window_start = float(value["window_start"]) if value else now
                count = int(value["count"]) if value else 0
                if now - window_start >= window_seconds:
                    window_start, count = now, 0

                reset_at = window_start + window_seconds
                if count >= self.limit:
                    remaining_ms = (reset_at - now) * 1000
                    retry_after = max(1, math.ceil(remaining_ms / 1000))
                    return RateLimitDecision(
                        allowed=False,
                        limit=self.limit,
                        remaining=0,
                        retry_after=retry_after,
                        reset_at=reset_at,
                    )

                new_value = {"window_start": window_start, "count": count + 1}
                ttl = max(reset_at - now, 0.001)
                if await self.store.put_if_version(key, new_value, version, ttl_seconds=ttl):
                    return RateLimitDecision(
                        allowed=True,
                        limit=self.limit,
                        remaining=self.limit - count - 1,
                        reset_at=reset_at,
                    )
        except SQLAlchemyError as e:
            return self._allow_unchecked(f"store error: {e}", client_key)

        return self._allow_unchecked("CAS retries exhausted", client_key)
