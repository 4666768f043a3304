"""Repository for the fingerprint-keyed recommendation cache."""

import time

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.contracts import Provenance, RecommendationResult
from app.logging import get_logger
from app.storage.json_utils import safe_json_dumps, safe_json_loads
from app.storage.models import CachedRecommendation

logger = get_logger(__name__)


class CacheRepo:
    """Recommendation cache with per-entry expiry and hit counting."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_fresh(
        self,
        fingerprint: str,
        max_age_seconds: float,
        now: float | None = None,
    ) -> RecommendationResult | None:
        """Return a fresh cached result and count the hit.

        An entry is fresh while it is younger than ``max_age_seconds`` and
        has not passed its own expiry.

        Args:
            fingerprint: Preference fingerprint
            max_age_seconds: Cache TTL
            now: Current epoch seconds

        Returns:
            Result with provenance ``cache``, or None on a miss
        """
        now = time.time() if now is None else now
        entry = await self.session.get(CachedRecommendation, fingerprint)
        if entry is None:
            return None
        if now - entry.generated_at >= max_age_seconds or now >= entry.expires_at:
            return None

        data = safe_json_loads(entry.payload)
        try:
            result = RecommendationResult.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache entry: {e}", extra={"fingerprint": fingerprint})
            return None

        # Atomic increment so concurrent hits are all counted
        await self.session.execute(
            update(CachedRecommendation)
            .where(CachedRecommendation.fingerprint == fingerprint)
            .values(hit_count=CachedRecommendation.hit_count + 1)
        )
        await self.session.commit()
        hit_count = await self.session.scalar(
            select(CachedRecommendation.hit_count).where(
                CachedRecommendation.fingerprint == fingerprint
            )
        )

        result.provenance = Provenance.CACHE
        result.hit_count = hit_count or 0
        return result

    async def put(
        self,
        result: RecommendationResult,
        domain: str,
        ttl_seconds: float,
    ) -> None:
        """Store a generated or fallback result, replacing any older entry."""
        payload = safe_json_dumps(result.to_dict())
        entry = await self.session.get(CachedRecommendation, result.fingerprint)
        if entry is None:
            entry = CachedRecommendation(fingerprint=result.fingerprint, hit_count=0)
            self.session.add(entry)
        entry.domain = domain
        entry.payload = payload
        entry.origin = result.origin.value
        entry.generated_at = result.generated_at
        entry.expires_at = result.generated_at + ttl_seconds
        entry.hit_count = 0
        await self.session.commit()

    async def get_hit_count(self, fingerprint: str) -> int | None:
        return await self.session.scalar(
            select(CachedRecommendation.hit_count).where(
                CachedRecommendation.fingerprint == fingerprint
            )
        )

    async def purge_expired(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        result = await self.session.execute(
            delete(CachedRecommendation).where(CachedRecommendation.expires_at <= now)
        )
        await self.session.commit()
        return result.rowcount or 0
