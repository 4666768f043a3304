"""Tests for the recommendation orchestrator."""

import asyncio
import json
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from app.config import config
from app.core.contracts import Choice, Provenance, SessionState
from app.core.domains import get_domain
from app.core.orchestrator import RecommendationOrchestrator
from app.resilience import BreakerState, CircuitBreaker, MemoryControlStore
from app.storage import CacheRepo, EventsRepo


def valid_payload(count: int = 3, confidence: float | None = 0.9) -> str:
    body = {
        "recommendations": [
            {
                "title": f"Pick {i}",
                "description": "Fits what you asked for.",
                "type": "video",
                "duration": "15 minutes",
                "matchReason": "Matches your answers",
            }
            for i in range(count)
        ],
        "reasoning": "Balanced set",
    }
    if confidence is not None:
        body["confidence"] = confidence
    return json.dumps(body)


def _session(clock, *answers: str, session_id: str = "d" * 32) -> SessionState:
    state = SessionState(
        session_id=session_id,
        domain="general",
        context={"device": "desktop", "time_of_day": "evening"},
        created_at=clock(),
    )
    for i, answer in enumerate(answers):
        state.add_choice(Choice(f"q{i}", answer, clock()))
    return state


@pytest.fixture
def cfg():
    return replace(config, generation_timeout_seconds=0.2)


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        "generation", MemoryControlStore(clock=clock), threshold=5, cooldown_seconds=60, clock=clock
    )


def _orchestrator(session, breaker, generator, cfg, clock) -> RecommendationOrchestrator:
    return RecommendationOrchestrator(
        cache=CacheRepo(session),
        breaker=breaker,
        generator=generator,
        cfg=cfg,
        events=EventsRepo(session),
        clock=clock,
    )


@pytest.mark.anyio
async def test_generated_result(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.return_value = valid_payload()
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)

    result = await orchestrator.recommend(_session(clock, "challenge"), get_domain("general"))

    assert result.provenance == Provenance.GENERATED
    assert result.origin == Provenance.GENERATED
    assert len(result.items) == 3
    assert result.confidence == 0.9
    assert result.fingerprint.startswith("recs:")

    request = generator.generate.await_args.args[0]
    assert request.count == 3
    assert request.domain == "general"
    assert len(request.idempotency_key) == 32


@pytest.mark.anyio
async def test_confidence_derived_when_not_reported(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.return_value = valid_payload(confidence=None)
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)

    result = await orchestrator.recommend(_session(clock, "challenge", "video"), get_domain("general"))
    assert 0.0 < result.confidence < 1.0


@pytest.mark.anyio
async def test_repeat_fingerprint_is_served_from_cache(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.return_value = valid_payload()
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)
    general = get_domain("general")

    first = await orchestrator.recommend(_session(clock, "challenge", session_id="1" * 32), general)
    clock.advance(30)
    second = await orchestrator.recommend(_session(clock, "challenge", session_id="2" * 32), general)

    assert generator.generate.await_count == 1
    assert second.provenance == Provenance.CACHE
    assert second.origin == Provenance.GENERATED
    assert second.hit_count == 1
    assert [i.title for i in second.items] == [i.title for i in first.items]


@pytest.mark.anyio
async def test_invalid_responses_trip_breaker_then_short_circuit(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.return_value = "Sorry, I cannot help with that."
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)
    general = get_domain("general")

    answers = ["alpha", "bravo", "charlie", "delta", "echo"]
    for answer in answers:
        result = await orchestrator.recommend(_session(clock, answer), general)
        assert result.provenance == Provenance.FALLBACK
        assert len(result.items) == 3

    assert (await breaker.snapshot()).state == BreakerState.OPEN
    assert generator.generate.await_count == 5

    result = await orchestrator.recommend(_session(clock, "foxtrot"), general)
    assert result.provenance == Provenance.FALLBACK
    assert result.confidence == cfg.fallback_confidence
    assert len(result.items) == 3
    assert generator.generate.await_count == 5


@pytest.mark.anyio
async def test_timeout_falls_back(session, breaker, cfg, clock):
    async def hang(request):
        await asyncio.sleep(5)

    generator = AsyncMock()
    generator.generate.side_effect = hang
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)

    result = await orchestrator.recommend(_session(clock, "entertain"), get_domain("general"))
    assert result.provenance == Provenance.FALLBACK
    assert (await breaker.snapshot()).failures == 1


@pytest.mark.anyio
async def test_fallback_is_cached_briefly(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.side_effect = RuntimeError("connection reset")
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)
    general = get_domain("general")

    result = await orchestrator.recommend(_session(clock, "challenge"), general)
    assert result.origin == Provenance.FALLBACK

    cache = CacheRepo(session)
    soon = await cache.get_fresh(result.fingerprint, cfg.cache_ttl_seconds, now=clock() + 60)
    assert soon.origin == Provenance.FALLBACK
    later = clock() + cfg.fallback_cache_ttl_seconds + 1
    assert await cache.get_fresh(result.fingerprint, cfg.cache_ttl_seconds, now=later) is None


@pytest.mark.anyio
async def test_completion_event(session, breaker, cfg, clock):
    generator = AsyncMock()
    generator.generate.return_value = valid_payload()
    orchestrator = _orchestrator(session, breaker, generator, cfg, clock)
    state = _session(clock, "challenge", "video")

    await orchestrator.recommend(state, get_domain("general"))

    events = await EventsRepo(session).list_events(event_name="recommendations_generated")
    assert len(events) == 1
    payload = json.loads(events[0].payload_json)
    assert payload["provenance"] == "generated"
    assert payload["questionCount"] == 2
    assert payload["finalEntropy"] == pytest.approx(2.0)
