"""Tests for the maintenance jobs and their scheduling."""

import pytest

from app.core.contracts import SessionState
from app.core.entropy import estimate_question_gain
from app.jobs import (
    PURGE_JOB_ID,
    QUESTION_STATS_JOB_ID,
    get_scheduler,
    run_purge_expired,
    run_question_stats,
    setup_all_jobs,
    shutdown_scheduler,
    start_scheduler,
)
from app.jobs.question_stats import DEFAULT_AVG_INFO_GAIN
from app.resilience import SqlControlStore
from app.storage import EventsRepo, QuestionsRepo, SessionsRepo
from app.storage.seed import DEFAULT_QUESTIONS


@pytest.mark.anyio
async def test_purge_removes_only_expired_state(session_factory, session, clock):
    sessions = SessionsRepo(session)
    for sid, created in (("a" * 32, clock() - 7200), ("b" * 32, clock())):
        await sessions.put(
            SessionState(session_id=sid, domain="general", context={}, created_at=created),
            ttl_seconds=3600,
            now=created,
        )

    store = SqlControlStore(session_factory, clock=clock)
    await store.put_if_version("ratelimit:old", {"count": 1}, 0, ttl_seconds=10)
    clock.advance(3700)
    await store.put_if_version("ratelimit:new", {"count": 1}, 0, ttl_seconds=60)

    summary = await run_purge_expired(session_factory, now=clock())

    assert summary == {"sessions": 2, "cache": 0, "control_state": 1}
    assert await store.get("ratelimit:new") == ({"count": 1}, 1)


@pytest.mark.anyio
async def test_purge_with_nothing_expired(session_factory, clock):
    summary = await run_purge_expired(session_factory, now=clock())
    assert summary == {"sessions": 0, "cache": 0, "control_state": 0}


@pytest.mark.anyio
async def test_question_stats_recomputes_gains(session_factory, catalog):
    events = EventsRepo(catalog)
    for choice in ("challenge", "challenge", "challenge", "entertain"):
        await events.log_event(
            "question_answered",
            session_id="s" * 32,
            question_id="cognitive_engagement",
            payload={"choice": choice},
        )
    await QuestionsRepo(catalog).record_feedback("learning_depth", 0.8, 1.0)

    summary = await run_question_stats(session_factory)

    assert summary == {"updated": 2, "skipped": len(DEFAULT_QUESTIONS) - 2}
    async with session_factory() as fresh:
        repo = QuestionsRepo(fresh)
        pivot = await repo.get_question("cognitive_engagement")
        followup = await repo.get_question("learning_depth")
        untouched = await repo.get_question("content_format")

    assert pivot.expected_info_gain == pytest.approx(
        estimate_question_gain(DEFAULT_AVG_INFO_GAIN, [3, 1])
    )
    assert followup.expected_info_gain == pytest.approx(0.8)
    assert untouched.expected_info_gain == pytest.approx(0.78)


@pytest.mark.anyio
async def test_question_stats_is_stable_across_runs(session_factory, catalog):
    events = EventsRepo(catalog)
    for choice in ("challenge", "entertain"):
        await events.log_event(
            "question_answered",
            session_id="s" * 32,
            question_id="cognitive_engagement",
            payload={"choice": choice},
        )

    gains = []
    for _ in range(4):
        await run_question_stats(session_factory)
        async with session_factory() as fresh:
            question = await QuestionsRepo(fresh).get_question("cognitive_engagement")
        gains.append(question.expected_info_gain)

    assert gains == pytest.approx([gains[0]] * 4)
    assert gains[0] == pytest.approx(estimate_question_gain(DEFAULT_AVG_INFO_GAIN, [1, 1]))


@pytest.mark.anyio
async def test_setup_all_jobs_registers_both_jobs():
    try:
        start_scheduler()
        setup_all_jobs()
        job_ids = {job.id for job in get_scheduler().get_jobs()}
        assert job_ids == {PURGE_JOB_ID, QUESTION_STATS_JOB_ID}

        # Re-running replaces rather than duplicates
        setup_all_jobs()
        assert len(get_scheduler().get_jobs()) == 2
    finally:
        shutdown_scheduler()
