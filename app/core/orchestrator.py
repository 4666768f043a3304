"""Recommendation orchestrator.

cache -> breaker-guarded generation -> payload validation -> fallback.
Every failure of the generation path is a visible ``Err`` branch that
ends in the fallback generator; ``recommend`` never raises.
"""

import asyncio
import time
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from app.config import Config
from app.core.contracts import (
    Err,
    GenerationClient,
    Provenance,
    RecommendationResult,
    SessionState,
)
from app.core.domains import DomainSpec
from app.core.entropy import recommendation_confidence
from app.core.fallback import FALLBACK_REASONING, fallback_recommendations
from app.core.fingerprint import session_fingerprint
from app.core.payload import ParsedRecommendations, parse_payload
from app.core.prompt import build_generation_request
from app.errors import UpstreamServiceError
from app.logging import get_logger
from app.resilience.breaker import CircuitBreaker
from app.storage.repo_cache import CacheRepo
from app.storage.repo_events import EventsRepo

logger = get_logger(__name__)


class RecommendationOrchestrator:
    """Produces recommendations for a session that has stopped eliciting.

    Args:
        cache: Recommendation cache repository
        breaker: Circuit breaker guarding the generation service
        generator: Generation service client
        cfg: Application configuration
        events: Optional events repository for completion telemetry
        clock: Time source (epoch seconds)
    """

    def __init__(
        self,
        cache: CacheRepo,
        breaker: CircuitBreaker,
        generator: GenerationClient,
        cfg: Config,
        events: EventsRepo | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.breaker = breaker
        self.generator = generator
        self.cfg = cfg
        self.events = events
        self._clock = clock

    async def recommend(self, session: SessionState, domain: DomainSpec) -> RecommendationResult:
        """Get recommendations for ``session``.

        Returns:
            Exactly ``domain.recs_count(cfg)`` items with provenance
            ``cache``, ``generated`` or ``fallback``
        """
        started = self._clock()
        count = domain.recs_count(self.cfg)
        fingerprint = session_fingerprint(session)

        result = await self._from_cache(fingerprint)
        if result is None:
            outcome = await self.breaker.execute(
                lambda: self._generate(session, domain, count, fingerprint)
            )
            if isinstance(outcome, Err):
                logger.warning(
                    f"Generation failed ({outcome.reason}), using fallback",
                    extra={"session_id": session.session_id, "fingerprint": fingerprint},
                )
                result = self._fallback(session, count, fingerprint)
            else:
                result = self._generated(session, domain, outcome.value, fingerprint)
            await self._store(result, domain)

        await self._emit_completion(session, domain, result, started)
        return result

    async def _from_cache(self, fingerprint: str) -> RecommendationResult | None:
        try:
            result = await self.cache.get_fresh(
                fingerprint, self.cfg.cache_ttl_seconds, now=self._clock()
            )
        except SQLAlchemyError as e:
            await self.cache.session.rollback()
            logger.warning(f"Cache lookup failed: {e}", extra={"fingerprint": fingerprint})
            return None
        if result is not None:
            logger.info(
                f"Cache hit ({result.hit_count} hits)", extra={"fingerprint": fingerprint}
            )
        return result

    async def _generate(
        self,
        session: SessionState,
        domain: DomainSpec,
        count: int,
        fingerprint: str,
    ) -> ParsedRecommendations:
        """One guarded attempt: call, bound by timeout, then validate.

        Raises:
            UpstreamServiceError: On timeout or transport failure
            PayloadValidationError: On a malformed response
        """
        request = build_generation_request(session, domain, count, fingerprint)
        try:
            raw = await asyncio.wait_for(
                self.generator.generate(request),
                timeout=self.cfg.generation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamServiceError(
                "Generation service timed out",
                {"timeoutSeconds": self.cfg.generation_timeout_seconds},
            ) from e
        return parse_payload(raw, count)

    def _generated(
        self,
        session: SessionState,
        domain: DomainSpec,
        parsed: ParsedRecommendations,
        fingerprint: str,
    ) -> RecommendationResult:
        confidence = parsed.confidence
        if confidence is None:
            model = domain.entropy_model(self.cfg)
            confidence = recommendation_confidence(
                session.choice_count,
                model.remaining(session.choice_count),
                archetype_count=model.archetype_count,
            )
        return RecommendationResult(
            items=parsed.items,
            provenance=Provenance.GENERATED,
            confidence=confidence,
            origin=Provenance.GENERATED,
            fingerprint=fingerprint,
            generated_at=self._clock(),
            reasoning=parsed.reasoning,
        )

    def _fallback(self, session: SessionState, count: int, fingerprint: str) -> RecommendationResult:
        return RecommendationResult(
            items=fallback_recommendations(session, count),
            provenance=Provenance.FALLBACK,
            confidence=self.cfg.fallback_confidence,
            origin=Provenance.FALLBACK,
            fingerprint=fingerprint,
            generated_at=self._clock(),
            reasoning=FALLBACK_REASONING,
        )

    async def _store(self, result: RecommendationResult, domain: DomainSpec) -> None:
        ttl = (
            self.cfg.cache_ttl_seconds
            if result.origin == Provenance.GENERATED
            else self.cfg.fallback_cache_ttl_seconds
        )
        try:
            await self.cache.put(result, domain.id, ttl)
        except SQLAlchemyError as e:
            await self.cache.session.rollback()
            logger.warning(
                f"Failed to cache recommendations: {e}", extra={"fingerprint": result.fingerprint}
            )

    async def _emit_completion(
        self,
        session: SessionState,
        domain: DomainSpec,
        result: RecommendationResult,
        started: float,
    ) -> None:
        model = domain.entropy_model(self.cfg)
        now = self._clock()
        payload = {
            "provenance": result.provenance.value,
            "origin": result.origin.value,
            "sessionDurationSeconds": round(session.duration_seconds(now), 3),
            "latencyMs": round((now - started) * 1000, 1),
            "finalEntropy": round(model.remaining(session.choice_count), 4),
            "questionCount": session.choice_count,
            "fingerprint": result.fingerprint,
        }
        logger.info(
            f"Recommendations ready: provenance={result.provenance.value} "
            f"questions={session.choice_count}",
            extra={"session_id": session.session_id, "fingerprint": result.fingerprint},
        )
        if self.events is not None:
            await self.events.try_log_event(
                "recommendations_generated", session_id=session.session_id, payload=payload
            )
