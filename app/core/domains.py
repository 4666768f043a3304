"""Declarative domain table.

Each domain names its pivot question, the branches an early answer
selects (a two-level decision tree: branch chosen once, then a flat
ranked pool), the context affinity rules used when scoring, and the
domain-level overrides for archetype count and result size.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.config import Config
from app.core.contracts import Question, QuestionType, SessionState
from app.core.entropy import EntropyModel
from app.errors import ValidationError

IDENTIFIER_PATTERN = r"^[a-z0-9_]{1,64}$"


class AffinityRule(BaseModel):
    """Question category that is more useful under a given context signal."""

    model_config = ConfigDict(frozen=True)

    category: str
    context_key: Literal["device", "time_of_day", "referrer"]
    values: frozenset[str]

    def matches(self, question: Question, context: dict[str, str]) -> bool:
        return question.category == self.category and context.get(self.context_key) in self.values


class BranchSpec(BaseModel):
    """Restricted candidate pool selected by the branching answer."""

    model_config = ConfigDict(frozen=True)

    name: str
    question_types: frozenset[QuestionType]
    categories: frozenset[str] = Field(min_length=1)


class DomainSpec(BaseModel):
    """Configuration for one content domain."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(pattern=IDENTIFIER_PATTERN)
    name: str
    description: str = ""
    pivot_question_id: str = Field(pattern=IDENTIFIER_PATTERN)
    branching_question_id: str | None = None
    branches: dict[str, BranchSpec]
    default_branch: BranchSpec
    affinity_rules: tuple[AffinityRule, ...] = ()
    archetype_count: int | None = Field(default=None, ge=2)
    target_count: int | None = Field(default=None, ge=1, le=5)

    @model_validator(mode="after")
    def _branching_defaults_to_pivot(self) -> "DomainSpec":
        if self.branching_question_id is None:
            object.__setattr__(self, "branching_question_id", self.pivot_question_id)
        if not self.branches:
            raise ValueError(f"domain {self.id} must define at least one branch")
        return self

    def branch_for(self, session: SessionState) -> BranchSpec:
        """Branch chosen by the designated branching answer (or the first answer)."""
        choice = session.get_choice(self.branching_question_id or self.pivot_question_id)
        if choice is None and session.choices:
            choice = session.choices[0].choice
        if choice is None:
            return self.default_branch
        return self.branches.get(choice, self.default_branch)

    def context_bonus_applies(self, question: Question, context: dict[str, str]) -> bool:
        return any(rule.matches(question, context) for rule in self.affinity_rules)

    def entropy_model(self, cfg: Config) -> EntropyModel:
        return EntropyModel(
            reduction_per_choice=cfg.entropy_reduction_per_choice,
            archetype_count=self.archetype_count or cfg.default_archetype_count,
            stop_threshold=cfg.entropy_stop_threshold,
            max_questions=cfg.max_questions_per_session,
        )

    def recs_count(self, cfg: Config) -> int:
        return self.target_count or cfg.recs_target_count


_COMMON_AFFINITY = [
    {"category": "time", "context_key": "time_of_day", "values": ["night", "morning"]},
    {"category": "learning", "context_key": "time_of_day", "values": ["daytime"]},
    {"category": "format", "context_key": "device", "values": ["mobile"]},
]

_ALL_TYPES = ["followup_a", "followup_b", "contextual"]

_RAW_DOMAINS: list[dict] = [
    {
        "id": "general",
        "name": "General Content",
        "description": "Videos, articles, podcasts and interactive content",
        "pivot_question_id": "cognitive_engagement",
        "branches": {
            "challenge": {
                "name": "high_cognitive_load",
                "question_types": ["followup_a", "contextual"],
                "categories": ["learning", "format", "complexity", "topic", "time", "length", "creator"],
            },
            "entertain": {
                "name": "low_cognitive_load",
                "question_types": ["followup_b", "contextual"],
                "categories": [
                    "engagement", "novelty", "social", "mood", "visual", "time", "length", "creator",
                ],
            },
        },
        "default_branch": {
            "name": "open",
            "question_types": _ALL_TYPES,
            "categories": [
                "learning", "format", "complexity", "topic", "engagement",
                "novelty", "social", "mood", "visual", "time", "length", "creator",
            ],
        },
        "affinity_rules": _COMMON_AFFINITY,
    },
    {
        "id": "movies",
        "name": "Movies",
        "description": "Feature films for tonight",
        "pivot_question_id": "movie_mood",
        "branches": {
            "challenge": {
                "name": "intense",
                "question_types": ["followup_a", "contextual"],
                "categories": [
                    "genre", "pace", "stakes", "violence", "ending",
                    "language", "cast", "rating", "franchise",
                ],
            },
            "unwind": {
                "name": "easygoing",
                "question_types": ["followup_b", "contextual"],
                "categories": [
                    "genre", "era", "reality", "time", "social",
                    "language", "cast", "rating", "franchise",
                ],
            },
        },
        "default_branch": {
            "name": "open",
            "question_types": _ALL_TYPES,
            "categories": [
                "genre", "pace", "stakes", "violence", "ending", "era", "reality",
                "social", "time", "language", "cast", "rating", "franchise",
            ],
        },
        "affinity_rules": [
            {"category": "time", "context_key": "time_of_day", "values": ["night"]},
            {"category": "social", "context_key": "time_of_day", "values": ["evening"]},
            {"category": "language", "context_key": "device", "values": ["desktop", "tablet"]},
        ],
        "target_count": 3,
    },
]

DOMAINS: dict[str, DomainSpec] = {
    raw["id"]: DomainSpec.model_validate(raw) for raw in _RAW_DOMAINS
}


def get_domain(domain_id: str) -> DomainSpec:
    """Look up a domain.

    Raises:
        ValidationError: If the domain is unknown
    """
    domain = DOMAINS.get(domain_id)
    if domain is None:
        raise ValidationError(
            f"Unknown domain: {domain_id}", {"domain": domain_id, "known": sorted(DOMAINS)}
        )
    return domain


def list_domains() -> list[DomainSpec]:
    return list(DOMAINS.values())
