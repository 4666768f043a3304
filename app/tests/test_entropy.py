"""Tests for the entropy model and information-theory helpers."""

import math

import pytest

from app.core.contracts import Choice, Phase, SessionState
from app.core.entropy import (
    EntropyModel,
    binary_question_gain,
    distribution_entropy,
    estimate_question_gain,
    initial_entropy,
    question_informativeness,
    recommendation_confidence,
    remaining_entropy,
    should_stop,
)


def _session(choice_count: int) -> SessionState:
    state = SessionState(session_id="a" * 32, domain="general", context={}, created_at=0.0)
    for i in range(choice_count):
        state.add_choice(Choice(question_id=f"q{i}", choice="x", answered_at=float(i)))
    return state


def test_initial_entropy_is_log2_of_archetypes():
    assert initial_entropy(8) == 3.0
    assert initial_entropy(2) == 1.0
    with pytest.raises(ValueError):
        initial_entropy(0)


def test_remaining_entropy_decreases_and_floors_at_zero():
    assert remaining_entropy(0, 0.5) == 3.0
    assert remaining_entropy(2, 0.5) == 2.0
    assert remaining_entropy(10, 0.5) == 0.0


def test_should_stop_on_threshold():
    # 3 - 4 * 0.55 = 0.8 keeps going, 3 - 5 * 0.55 = 0.25 stops
    assert should_stop(4, 0.55) is False
    assert should_stop(5, 0.55) is True


def test_should_stop_on_question_budget():
    assert should_stop(5, 0.01, max_questions=6) is False
    assert should_stop(6, 0.01, max_questions=6) is True


def test_default_reduction_needs_full_budget():
    # 3 - 5 * 0.5 = 0.5 is above the threshold, so the budget decides
    assert should_stop(5, 0.5) is False
    assert should_stop(6, 0.5) is True


def test_model_phase_and_progress():
    model = EntropyModel(reduction_per_choice=0.5)

    fresh = _session(0)
    assert model.phase(fresh) == Phase.ELICITING
    assert model.progress(fresh) == 0

    halfway = _session(3)
    assert model.progress(halfway) == 50
    assert model.remaining(halfway.choice_count) == 1.5

    done = _session(6)
    assert model.phase(done) == Phase.FINALIZING
    assert model.progress(done) == 100


def test_distribution_entropy():
    assert distribution_entropy([0.5, 0.5]) == 1.0
    assert distribution_entropy([1.0, 0.0]) == 0.0
    assert math.isclose(distribution_entropy([0.25] * 4), 2.0)


def test_binary_question_gain_is_largest_for_even_split():
    even = binary_question_gain(3.0, 0.5)
    skewed = binary_question_gain(3.0, 0.9)
    assert even == pytest.approx(1.0)
    assert skewed == pytest.approx(distribution_entropy([0.9, 0.1]))
    assert skewed < even
    assert binary_question_gain(3.0, 1.0) == 0.0


def test_binary_question_gain_is_capped_by_remaining_entropy():
    assert binary_question_gain(0.4, 0.5) == pytest.approx(0.4)
    assert binary_question_gain(0.0, 0.5) == 0.0


def test_question_informativeness():
    assert question_informativeness([5, 5]) == 1.0
    assert question_informativeness([10, 0]) == 0.0
    # Nobody answered yet
    assert question_informativeness([0, 0]) == 1.0


def test_estimate_question_gain():
    assert math.isclose(estimate_question_gain(0.8, [5, 5], success_rate=1.0), 0.8)
    assert math.isclose(estimate_question_gain(0.8, [5, 5], success_rate=0.0), 0.4)
    # Heavily used questions are discounted
    assert math.isclose(
        estimate_question_gain(0.8, [5, 5], success_rate=1.0, usage_count=101), 0.76
    )
    assert estimate_question_gain(0.8, [10, 0]) == 0.0


def test_recommendation_confidence_bounds():
    low = recommendation_confidence(0, 3.0, consistency=0.0)
    high = recommendation_confidence(6, 0.0)
    assert low == 0.0
    assert 0.0 < high <= 1.0
    assert recommendation_confidence(3, 1.5) < high
