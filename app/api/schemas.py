"""Request bodies and response shaping for the HTTP API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.domains import DomainSpec
from app.core.flow import TurnResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class StartRequest(_CamelModel):
    """Body of ``POST /api/start``."""

    domain: str
    context: dict[str, str] | None = None


class AnswerRequest(_CamelModel):
    """Body of ``POST /api/answer/{session_id}``."""

    question_id: str = Field(alias="questionId")
    choice: str
    response_time_ms: int | None = Field(default=None, alias="responseTimeMs")


class FeedbackRequest(_CamelModel):
    """Body of ``POST /api/feedback/{session_id}``."""

    question_id: str | None = Field(default=None, alias="questionId")
    actual_info_gain: float | None = Field(default=None, alias="actualInfoGain")
    satisfaction: float | None = None
    rating: int | None = None


def turn_to_dict(turn: TurnResult) -> dict[str, Any]:
    """Serialize a turn for the client."""
    body: dict[str, Any] = {
        "sessionId": turn.session_id,
        "domain": turn.domain,
        "status": "complete" if turn.is_final else "question",
        "progress": turn.progress,
        "entropy": round(turn.entropy, 4),
        "questionCount": turn.question_count,
    }
    if turn.is_final:
        body["recommendations"] = [item.to_dict() for item in turn.result.items]
        body["provenance"] = turn.result.provenance.value
        body["confidence"] = turn.result.confidence
        body["reasoning"] = turn.result.reasoning
    else:
        body["question"] = turn.question.to_dict()
    body.update(turn.extra)
    return body


def domain_to_dict(domain: DomainSpec) -> dict[str, Any]:
    return {
        "id": domain.id,
        "name": domain.name,
        "description": domain.description,
        "branches": sorted(domain.branches),
    }
