"""Entropy model: remaining uncertainty about user intent.

The elicitation state machine has a single termination predicate,
``should_stop``. Everything here is a pure function of the choice count
and configuration; nothing touches storage.

``reduction_per_choice`` is a tunable, not a measured statistic. It has
never been derived from outcome data and should be treated as a knob
pending calibration.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from app.core.contracts import Phase, SessionState

DEFAULT_ARCHETYPE_COUNT = 8
DEFAULT_STOP_THRESHOLD = 0.3
DEFAULT_MAX_QUESTIONS = 6


def initial_entropy(archetype_count: int = DEFAULT_ARCHETYPE_COUNT) -> float:
    """Entropy in bits with all archetypes equally likely."""
    if archetype_count < 1:
        raise ValueError("archetype_count must be >= 1")
    return math.log2(archetype_count)


def remaining_entropy(
    choice_count: int,
    reduction_per_choice: float,
    archetype_count: int = DEFAULT_ARCHETYPE_COUNT,
) -> float:
    """Entropy left after ``choice_count`` resolved preferences, floored at 0."""
    return max(0.0, initial_entropy(archetype_count) - choice_count * reduction_per_choice)


def should_stop(
    choice_count: int,
    reduction_per_choice: float,
    archetype_count: int = DEFAULT_ARCHETYPE_COUNT,
    stop_threshold: float = DEFAULT_STOP_THRESHOLD,
    max_questions: int = DEFAULT_MAX_QUESTIONS,
) -> bool:
    """True once uncertainty is low enough or the question budget is spent."""
    if choice_count >= max_questions:
        return True
    return remaining_entropy(choice_count, reduction_per_choice, archetype_count) < stop_threshold


@dataclass(frozen=True)
class EntropyModel:
    """Entropy settings bound to one domain."""

    reduction_per_choice: float
    archetype_count: int = DEFAULT_ARCHETYPE_COUNT
    stop_threshold: float = DEFAULT_STOP_THRESHOLD
    max_questions: int = DEFAULT_MAX_QUESTIONS

    @property
    def initial(self) -> float:
        return initial_entropy(self.archetype_count)

    def remaining(self, choice_count: int) -> float:
        return remaining_entropy(choice_count, self.reduction_per_choice, self.archetype_count)

    def should_stop(self, session: SessionState) -> bool:
        return should_stop(
            session.choice_count,
            self.reduction_per_choice,
            self.archetype_count,
            self.stop_threshold,
            self.max_questions,
        )

    def phase(self, session: SessionState) -> Phase:
        if session.is_finalized:
            return Phase.FINALIZED
        if self.should_stop(session):
            return Phase.FINALIZING
        return Phase.ELICITING

    def progress(self, session: SessionState) -> int:
        """Percent of the question budget used."""
        return min(100, round(session.choice_count / self.max_questions * 100))


# ------------------------------------------------------------------
# Information-theory helpers
# ------------------------------------------------------------------

def distribution_entropy(probabilities: Iterable[float]) -> float:
    """Shannon entropy in bits; zero-probability outcomes contribute nothing."""
    return -sum(p * math.log2(p) for p in probabilities if p > 0)


def information_gain(current_entropy: float, branches: Iterable[tuple[float, float]]) -> float:
    """Entropy reduction given ``(probability, entropy_after)`` branches."""
    weighted = sum(prob * entropy for prob, entropy in branches)
    return current_entropy - weighted


def binary_question_gain(current_entropy: float, split: float = 0.5) -> float:
    """Expected gain of a binary question with the given positive-answer rate.

    The answer carries at most the entropy of the split itself, and can never
    resolve more than the uncertainty that is left.
    """
    resolved = min(current_entropy, distribution_entropy([split, 1 - split]))
    remaining = current_entropy - resolved
    return information_gain(current_entropy, [(split, remaining), (1 - split, remaining)])


def question_informativeness(response_counts: Sequence[int]) -> float:
    """How evenly a question splits respondents, in [0, 1].

    A question nobody has answered yet is assumed perfectly balanced.
    """
    total = sum(response_counts)
    if total == 0:
        return 1.0
    max_entropy = math.log2(len(response_counts)) if len(response_counts) > 1 else 1.0
    return distribution_entropy(c / total for c in response_counts) / max_entropy


def estimate_question_gain(
    avg_info_gain: float,
    response_counts: Sequence[int],
    success_rate: float = 0.5,
    usage_count: int = 0,
) -> float:
    """Re-estimate a question's expected information gain from its history."""
    estimated = avg_info_gain * question_informativeness(response_counts)
    estimated *= 0.5 + success_rate * 0.5
    if usage_count > 100:
        estimated *= 0.95
    return min(1.0, max(0.0, estimated))


def recommendation_confidence(
    question_count: int,
    remaining: float,
    consistency: float = 1.0,
    archetype_count: int = DEFAULT_ARCHETYPE_COUNT,
) -> float:
    """Confidence in a recommendation set from how much was learned."""
    max_entropy = initial_entropy(archetype_count)
    reduction = (max_entropy - remaining) / max_entropy if max_entropy > 0 else 1.0
    question_confidence = 1 - math.exp(-question_count / 3)
    confidence = reduction * 0.5 + question_confidence * 0.3 + consistency * 0.2
    return max(0.0, min(1.0, confidence))
