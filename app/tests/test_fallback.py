"""Tests for the deterministic fallback generator."""

import pytest

from app.core.contracts import Choice, SessionState
from app.core.fallback import bucket_for, fallback_recommendations


def _session(domain: str, *answers: str) -> SessionState:
    state = SessionState(session_id="f" * 32, domain=domain, context={}, created_at=0.0)
    for i, answer in enumerate(answers):
        state.add_choice(Choice(question_id=f"q{i}", choice=answer, answered_at=float(i)))
    return state


BUCKETS = [
    ("general", ()),
    ("general", ("challenge",)),
    ("general", ("challenge", "video")),
    ("general", ("challenge", "text")),
    ("general", ("challenge", "new")),
    ("general", ("challenge", "deeper")),
    ("general", ("entertain",)),
    ("general", ("entertain", "quick")),
    ("general", ("entertain", "interactive")),
    ("general", ("something", "unmapped")),
    ("movies", ()),
    ("movies", ("challenge", "thriller")),
    ("movies", ("challenge", "scifi")),
    ("movies", ("unwind", "comedy")),
    ("movies", ("unwind", "drama")),
    ("movies", ("unwind", "classic", "fantasy")),
    ("movies", ("nonsense",)),
    ("podcasts", ("challenge",)),
]


@pytest.mark.parametrize("domain, answers", BUCKETS)
@pytest.mark.parametrize("count", [1, 2, 3, 4, 5])
def test_fallback_returns_exactly_count_distinct_items(domain, answers, count):
    items = fallback_recommendations(_session(domain, *answers), count)

    assert len(items) == count
    titles = [item.title.casefold() for item in items]
    assert len(set(titles)) == count
    for item in items:
        assert item.title and item.description and item.match_reason


def test_fallback_is_deterministic():
    session = _session("movies", "challenge", "thriller")
    first = [item.title for item in fallback_recommendations(session, 3)]
    second = [item.title for item in fallback_recommendations(session, 3)]
    assert first == second


def test_fallback_prefers_the_specific_bucket():
    items = fallback_recommendations(_session("movies", "challenge", "thriller"), 3)
    assert [item.title for item in items] == ["Prisoners", "Memento", "Gone Girl"]


def test_fallback_returns_copies():
    session = _session("general", "challenge")
    items = fallback_recommendations(session, 2)
    items[0].title = "mutated"
    assert fallback_recommendations(session, 2)[0].title != "mutated"


def test_count_is_clamped():
    session = _session("general")
    assert len(fallback_recommendations(session, 0)) == 1
    assert len(fallback_recommendations(session, 9)) == 5


def test_bucket_uses_first_two_answers():
    assert bucket_for(_session("general")) == (None, None)
    assert bucket_for(_session("general", "challenge")) == ("challenge", None)
    assert bucket_for(_session("general", "challenge", "video", "advanced")) == ("challenge", "video")
