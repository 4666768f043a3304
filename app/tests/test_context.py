"""Tests for request context derivation and fingerprinting."""

from datetime import datetime

import pytest

from app.core.context import build_context, detect_device, time_of_day_for
from app.core.contracts import Choice, SessionState
from app.core.fingerprint import coarse_context, compute_fingerprint, session_fingerprint
from app.errors import ValidationError


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)", "tablet"),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile Safari", "mobile"),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)", "mobile"),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "desktop"),
        (None, "unknown"),
        ("", "unknown"),
    ],
)
def test_detect_device(user_agent, expected):
    assert detect_device(user_agent) == expected


@pytest.mark.parametrize(
    "hour, expected",
    [(4, "night"), (5, "morning"), (9, "daytime"), (16, "daytime"), (17, "evening"), (21, "night")],
)
def test_time_of_day_buckets(hour, expected):
    assert time_of_day_for(hour) == expected


def test_build_context_derives_missing_signals():
    context = build_context(
        {"user_agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)"},
        now=datetime(2026, 1, 1, 22, 30),
    )
    assert context["device"] == "mobile"
    assert context["time_of_day"] == "night"


def test_build_context_keeps_supplied_values():
    context = build_context({"device": "desktop", "time_of_day": "morning", "referrer": "news"})
    assert context == {"device": "desktop", "time_of_day": "morning", "referrer": "news"}


@pytest.mark.parametrize(
    "raw",
    [
        {"location": "home"},
        {"device": "smartwatch"},
        {"time_of_day": "noon"},
        {"referrer": "x" * 1000},
    ],
)
def test_build_context_rejects_bad_input(raw):
    with pytest.raises(ValidationError):
        build_context(raw)


def test_fingerprint_ignores_answer_order():
    context = {"device": "mobile", "time_of_day": "evening"}
    a = compute_fingerprint("general", {"cognitive_engagement": "challenge", "content_format": "video"}, context)
    b = compute_fingerprint("general", {"content_format": "video", "cognitive_engagement": "challenge"}, context)
    assert a == b
    assert a.startswith("recs:")


def test_fingerprint_distinguishes_answers_and_domains():
    context = {"device": "mobile", "time_of_day": "evening"}
    base = compute_fingerprint("general", {"cognitive_engagement": "challenge"}, context)
    assert base != compute_fingerprint("general", {"cognitive_engagement": "entertain"}, context)
    assert base != compute_fingerprint("movies", {"cognitive_engagement": "challenge"}, context)
    assert base != compute_fingerprint(
        "general", {"cognitive_engagement": "challenge"}, {"device": "desktop", "time_of_day": "evening"}
    )


def test_fingerprint_uses_coarse_context_only():
    choices = {"movie_mood": "unwind"}
    evening = compute_fingerprint("movies", choices, {"device": "tablet", "time_of_day": "evening", "referrer": "a"})
    night = compute_fingerprint("movies", choices, {"device": "tablet", "time_of_day": "night", "referrer": "b"})
    assert evening == night
    assert coarse_context({}) == "unknown|day"


def test_session_fingerprint_matches_answer_set():
    first = SessionState(session_id="a" * 32, domain="movies", context={"device": "mobile"}, created_at=0.0)
    second = SessionState(session_id="b" * 32, domain="movies", context={"device": "mobile"}, created_at=5.0)
    first.add_choice(Choice("movie_mood", "unwind", 1.0))
    first.add_choice(Choice("movie_genre_light", "comedy", 2.0))
    second.add_choice(Choice("movie_genre_light", "comedy", 6.0))
    second.add_choice(Choice("movie_mood", "unwind", 7.0))
    assert session_fingerprint(first) == session_fingerprint(second)
