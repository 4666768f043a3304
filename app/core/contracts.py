"""Domain contracts and type definitions."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from app.errors import ValidationError

T = TypeVar("T")


class QuestionType(str, Enum):
    """Position of a question in the two-level decision tree."""

    PIVOT = "pivot"
    FOLLOWUP_A = "followup_a"
    FOLLOWUP_B = "followup_b"
    CONTEXTUAL = "contextual"


class Provenance(str, Enum):
    """Where a recommendation result came from."""

    CACHE = "cache"
    GENERATED = "generated"
    FALLBACK = "fallback"


class Phase(str, Enum):
    """Per-session state machine."""

    ELICITING = "eliciting"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class QuestionOption:
    """One side of a binary question."""

    id: str
    text: str
    emoji: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "emoji": self.emoji}


@dataclass
class Question:
    """Catalog question joined with its performance statistics."""

    id: str
    text: str
    category: str
    domain: str
    type: QuestionType
    expected_info_gain: float
    options: list[QuestionOption] = field(default_factory=list)
    is_active: bool = True
    usage_count: int = 0
    avg_satisfaction: float = 0.5

    def option_ids(self) -> set[str]:
        return {opt.id for opt in self.options}

    def option_text(self, option_id: str) -> str | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt.text
        return None

    def to_dict(self) -> dict[str, Any]:
        """Public representation returned to the caller."""
        return {
            "id": self.id,
            "text": self.text,
            "type": "binary_choice",
            "category": self.category,
            "options": [opt.to_dict() for opt in self.options],
            "expectedInfoGain": self.expected_info_gain,
        }


@dataclass
class Choice:
    """One answered question."""

    question_id: str
    choice: str
    answered_at: float
    response_time_ms: int | None = None
    question_text: str | None = None
    choice_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "choice": self.choice,
            "answeredAt": self.answered_at,
            "responseTimeMs": self.response_time_ms,
            "questionText": self.question_text,
            "choiceText": self.choice_text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Choice":
        return cls(
            question_id=data["questionId"],
            choice=data["choice"],
            answered_at=float(data.get("answeredAt", 0.0)),
            response_time_ms=data.get("responseTimeMs"),
            question_text=data.get("questionText"),
            choice_text=data.get("choiceText"),
        )


@dataclass
class RecommendationItem:
    """A single recommended piece of content."""

    title: str
    description: str
    type: str
    duration: str
    match_reason: str
    source: str | None = None
    year: int | None = None
    search_terms: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "duration": self.duration,
            "matchReason": self.match_reason,
            "source": self.source,
            "year": self.year,
            "searchTerms": self.search_terms,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecommendationItem":
        return cls(
            title=data["title"],
            description=data["description"],
            type=data["type"],
            duration=data["duration"],
            match_reason=data["matchReason"],
            source=data.get("source"),
            year=data.get("year"),
            search_terms=data.get("searchTerms"),
            url=data.get("url"),
        )


@dataclass
class RecommendationResult:
    """Result from the recommendation orchestrator.

    ``origin`` records whether the items were generated or came from the
    fallback pool; it survives caching, while ``provenance`` describes how
    this particular result was obtained.
    """

    items: list[RecommendationItem]
    provenance: Provenance
    confidence: float
    origin: Provenance
    fingerprint: str
    generated_at: float
    reasoning: str | None = None
    hit_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "provenance": self.provenance.value,
            "confidence": self.confidence,
            "origin": self.origin.value,
            "fingerprint": self.fingerprint,
            "generatedAt": self.generated_at,
            "reasoning": self.reasoning,
            "hitCount": self.hit_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecommendationResult":
        return cls(
            items=[RecommendationItem.from_dict(i) for i in data.get("items", [])],
            provenance=Provenance(data["provenance"]),
            confidence=float(data["confidence"]),
            origin=Provenance(data.get("origin", data["provenance"])),
            fingerprint=data.get("fingerprint", ""),
            generated_at=float(data.get("generatedAt", 0.0)),
            reasoning=data.get("reasoning"),
            hit_count=int(data.get("hitCount", 0)),
        )


@dataclass
class SessionState:
    """Per-conversation record persisted in the session store."""

    session_id: str
    domain: str
    context: dict[str, str]
    created_at: float
    choices: list[Choice] = field(default_factory=list)
    pending_question_id: str | None = None
    result: RecommendationResult | None = None
    finalized_at: float | None = None

    @property
    def is_finalized(self) -> bool:
        return self.result is not None

    @property
    def choice_count(self) -> int:
        return len(self.choices)

    def asked_question_ids(self) -> set[str]:
        return {c.question_id for c in self.choices}

    def get_choice(self, question_id: str) -> str | None:
        for c in self.choices:
            if c.question_id == question_id:
                return c.choice
        return None

    def add_choice(self, choice: Choice) -> None:
        """Append a choice; the history is append-only until finalized."""
        if self.is_finalized:
            raise ValidationError(
                "Session is already finalized", {"sessionId": self.session_id}
            )
        if choice.question_id in self.asked_question_ids():
            raise ValidationError(
                "Question already answered", {"questionId": choice.question_id}
            )
        self.choices.append(choice)
        self.pending_question_id = None

    def finalize(self, result: RecommendationResult, now: float) -> None:
        """Attach recommendations. Allowed exactly once."""
        if self.is_finalized:
            raise ValidationError(
                "Session is already finalized", {"sessionId": self.session_id}
            )
        self.result = result
        self.finalized_at = now
        self.pending_question_id = None

    def duration_seconds(self, now: float) -> float:
        end = self.finalized_at if self.finalized_at is not None else now
        return max(0.0, end - self.created_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "domain": self.domain,
            "context": dict(self.context),
            "createdAt": self.created_at,
            "choices": [c.to_dict() for c in self.choices],
            "pendingQuestionId": self.pending_question_id,
            "result": self.result.to_dict() if self.result else None,
            "finalizedAt": self.finalized_at,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SessionState":
        data = json.loads(raw)
        result = data.get("result")
        return cls(
            session_id=data["sessionId"],
            domain=data["domain"],
            context=data.get("context") or {},
            created_at=float(data["createdAt"]),
            choices=[Choice.from_dict(c) for c in data.get("choices", [])],
            pending_question_id=data.get("pendingQuestionId"),
            result=RecommendationResult.from_dict(result) if result else None,
            finalized_at=data.get("finalizedAt"),
        )


@dataclass
class GenerationRequest:
    """Structured preference summary sent to the generation service."""

    domain: str
    count: int
    choices: list[dict[str, str]]
    profile: dict[str, str]
    description: str
    idempotency_key: str


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    """Failed outcome with the reason it failed."""

    error: Exception
    ok: bool = False

    @property
    def reason(self) -> str:
        code = getattr(self.error, "code", None)
        return code or type(self.error).__name__


class GenerationClient(Protocol):
    """Opaque external generation service."""

    async def generate(self, request: GenerationRequest) -> str:
        """Return the raw response body for a preference summary.

        Raises:
            UpstreamServiceError: On transport errors or unavailability
        """
        ...
