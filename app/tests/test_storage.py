"""Tests for storage layer."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.contracts import (
    Choice,
    Provenance,
    QuestionType,
    RecommendationItem,
    RecommendationResult,
    SessionState,
)
from app.errors import CatalogUnavailable
from app.storage import CacheRepo, EventsRepo, QuestionsRepo, SessionsRepo, seed_catalog
from app.storage.models import QuestionRow
from app.storage.seed import DEFAULT_QUESTIONS


def _result(fingerprint: str, generated_at: float) -> RecommendationResult:
    return RecommendationResult(
        items=[
            RecommendationItem(
                title="Arrival",
                description="A linguist races to understand alien visitors.",
                type="movie",
                duration="116 minutes",
                match_reason="Cerebral science fiction",
            )
        ],
        provenance=Provenance.GENERATED,
        confidence=0.8,
        origin=Provenance.GENERATED,
        fingerprint=fingerprint,
        generated_at=generated_at,
    )


# ------------------------------------------------------------------
# Sessions
# ------------------------------------------------------------------

@pytest.mark.anyio
async def test_session_roundtrip_and_fixed_expiry(session):
    repo = SessionsRepo(session)
    state = SessionState(
        session_id="a" * 32, domain="general", context={"device": "mobile"}, created_at=1000.0
    )
    await repo.put(state, ttl_seconds=60, now=1000.0)

    state.add_choice(Choice("cognitive_engagement", "challenge", 1030.0, response_time_ms=1200))
    # Rewriting late in the session does not extend its lifetime
    await repo.put(state, ttl_seconds=60, now=1050.0)

    loaded = await repo.get(state.session_id, now=1055.0)
    assert loaded is not None
    assert loaded.choices[0].choice == "challenge"
    assert loaded.choices[0].response_time_ms == 1200
    assert loaded.context == {"device": "mobile"}

    assert await repo.get(state.session_id, now=1060.0) is None


@pytest.mark.anyio
async def test_session_purge(session):
    repo = SessionsRepo(session)
    for i, created in enumerate((0.0, 500.0)):
        await repo.put(
            SessionState(session_id=f"{i}" * 32, domain="general", context={}, created_at=created),
            ttl_seconds=100,
            now=created,
        )

    assert await repo.purge_expired(now=200.0) == 1
    assert await repo.get("1" * 32, now=200.0) is not None
    assert await repo.delete("1" * 32) is True
    assert await repo.delete("1" * 32) is False


# ------------------------------------------------------------------
# Question catalog
# ------------------------------------------------------------------

@pytest.mark.anyio
async def test_seed_is_idempotent(session):
    inserted = await seed_catalog(session)
    assert inserted == len(DEFAULT_QUESTIONS)
    assert await seed_catalog(session) == 0


@pytest.mark.anyio
async def test_seed_keeps_tuned_gains(catalog):
    repo = QuestionsRepo(catalog)
    await repo.set_expected_gain("content_format", 0.2)
    await seed_catalog(catalog)
    question = await repo.get_question("content_format")
    assert question.expected_info_gain == 0.2


@pytest.mark.anyio
async def test_get_pivot(catalog):
    repo = QuestionsRepo(catalog)
    pivot = await repo.get_pivot("movies", "movie_mood")
    assert pivot.id == "movie_mood"
    assert pivot.type == QuestionType.PIVOT
    assert pivot.option_ids() == {"challenge", "unwind"}
    assert await repo.get_pivot("podcasts") is None


@pytest.mark.anyio
async def test_list_candidates_filters_and_orders(catalog):
    repo = QuestionsRepo(catalog)
    candidates = await repo.list_candidates(
        "general",
        [QuestionType.FOLLOWUP_A, QuestionType.CONTEXTUAL],
        ["learning", "format", "time"],
        exclude_ids=["learning_depth"],
    )

    ids = [q.id for q in candidates]
    assert ids == ["time_commitment", "content_format", "practical_theoretical"]
    gains = [q.expected_info_gain for q in candidates]
    assert gains == sorted(gains, reverse=True)


@pytest.mark.anyio
async def test_invalid_options_are_skipped(catalog):
    now = datetime.now(timezone.utc)
    catalog.add(
        QuestionRow(
            id="broken_question",
            domain="general",
            text="Only one way?",
            type="followup_a",
            category="learning",
            expected_info_gain=0.99,
            options_json='[{"id": "only", "text": "One option"}]',
            is_active=True,
            created_at=now,
            updated_at=now,
        )
    )
    await catalog.commit()

    repo = QuestionsRepo(catalog)
    candidates = await repo.list_candidates("general", [QuestionType.FOLLOWUP_A], ["learning"])
    assert "broken_question" not in {q.id for q in candidates}
    assert await repo.get_question("broken_question") is None


@pytest.mark.anyio
async def test_record_feedback_running_average(catalog):
    repo = QuestionsRepo(catalog)

    perf = await repo.record_feedback("learning_depth", actual_info_gain=0.8, satisfaction=1.0)
    assert perf.usage_count == 1
    assert perf.avg_info_gain == pytest.approx(0.8)
    assert perf.avg_satisfaction == pytest.approx(1.0)

    perf = await repo.record_feedback("learning_depth", actual_info_gain=0.4)
    assert perf.usage_count == 2
    assert perf.avg_info_gain == pytest.approx(0.6)
    assert perf.avg_satisfaction == pytest.approx(1.0)

    question = await repo.get_question("learning_depth")
    assert question.usage_count == 2


@pytest.mark.anyio
async def test_catalog_failure_is_reported_as_unavailable():
    broken = AsyncMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("disk I/O error"))
    repo = QuestionsRepo(broken)

    with pytest.raises(CatalogUnavailable):
        await repo.get_pivot("general", "cognitive_engagement")
    broken.rollback.assert_awaited()


# ------------------------------------------------------------------
# Recommendation cache
# ------------------------------------------------------------------

@pytest.mark.anyio
async def test_cache_hit_counts(session):
    repo = CacheRepo(session)
    await repo.put(_result("recs:abc", generated_at=1000.0), "movies", ttl_seconds=600)
    assert await repo.get_hit_count("recs:abc") == 0

    first = await repo.get_fresh("recs:abc", max_age_seconds=600, now=1100.0)
    assert first.provenance == Provenance.CACHE
    assert first.origin == Provenance.GENERATED
    assert first.hit_count == 1
    assert first.items[0].title == "Arrival"

    second = await repo.get_fresh("recs:abc", max_age_seconds=600, now=1200.0)
    assert second.hit_count == 2
    assert await repo.get_hit_count("recs:abc") == 2


@pytest.mark.anyio
async def test_cache_expiry(session):
    repo = CacheRepo(session)
    await repo.put(_result("recs:old", generated_at=1000.0), "general", ttl_seconds=60)

    assert await repo.get_fresh("recs:old", max_age_seconds=600, now=1060.0) is None
    assert await repo.get_fresh("recs:old", max_age_seconds=30, now=1040.0) is None
    assert await repo.get_fresh("recs:missing", max_age_seconds=600, now=1000.0) is None

    assert await repo.purge_expired(now=1061.0) == 1
    assert await repo.get_hit_count("recs:old") is None


@pytest.mark.anyio
async def test_cache_put_resets_hit_count(session):
    repo = CacheRepo(session)
    await repo.put(_result("recs:x", generated_at=1000.0), "general", ttl_seconds=600)
    await repo.get_fresh("recs:x", max_age_seconds=600, now=1001.0)
    await repo.put(_result("recs:x", generated_at=2000.0), "general", ttl_seconds=600)
    assert await repo.get_hit_count("recs:x") == 0


# ------------------------------------------------------------------
# Events
# ------------------------------------------------------------------

@pytest.mark.anyio
async def test_events_and_answer_distribution(session):
    repo = EventsRepo(session)
    for choice in ("challenge", "challenge", "entertain"):
        await repo.log_event(
            "question_answered",
            session_id="s" * 32,
            question_id="cognitive_engagement",
            payload={"choice": choice},
        )
    await repo.log_event("session_started", session_id="s" * 32, payload={"device": "mobile"})

    assert await repo.count_events("question_answered") == 3
    assert await repo.count_events(session_id="s" * 32) == 4
    latest = await repo.list_events(limit=1)
    assert latest[0].event_name == "session_started"

    distribution = await repo.answer_distribution()
    assert distribution == {"cognitive_engagement": {"challenge": 2, "entertain": 1}}

    future = datetime.now(timezone.utc) + timedelta(hours=1)
    assert await repo.answer_distribution(since_dt=future) == {}


@pytest.mark.anyio
async def test_try_log_event_swallows_store_errors():
    broken = AsyncMock()
    broken.add = lambda obj: None
    broken.commit.side_effect = OperationalError("INSERT", {}, Exception("locked"))
    repo = EventsRepo(broken)

    assert await repo.try_log_event("session_started", session_id="x") is False
    broken.rollback.assert_awaited()
