"""Validation of generation-service responses."""

import json
import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from app.core.contracts import RecommendationItem
from app.errors import PayloadValidationError

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class GeneratedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)
    type: str = Field(min_length=1)
    duration: str = Field(min_length=1)
    match_reason: str = Field(alias="matchReason", min_length=1)
    source: str | None = None
    year: int | None = None
    search_terms: str | None = Field(default=None, alias="searchTerms")
    url: str | None = None

    @field_validator("title", "description", "type", "duration", "match_reason")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("year", mode="before")
    @classmethod
    def _lenient_year(cls, value):
        # Models sometimes answer "2019" or "2019-2020"
        if isinstance(value, str):
            match = re.match(r"\d{4}", value.strip())
            return int(match.group()) if match else None
        return value


class GeneratedPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recommendations: list[GeneratedItem]
    reasoning: str | None = None
    confidence: float | None = None


@dataclass
class ParsedRecommendations:
    """Validated payload ready for the orchestrator."""

    items: list[RecommendationItem]
    reasoning: str | None = None
    confidence: float | None = None


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def parse_payload(raw: str, expected_count: int) -> ParsedRecommendations:
    """Parse and validate a raw response body.

    The payload must hold exactly ``expected_count`` items with distinct
    titles (case-insensitive), each with the required fields.

    Raises:
        PayloadValidationError: If the payload is not acceptable
    """
    try:
        data = json.loads(_strip_fences(raw))
    except (json.JSONDecodeError, TypeError) as e:
        raise PayloadValidationError("Response is not valid JSON", {"reason": str(e)}) from e

    try:
        payload = GeneratedPayload.model_validate(data)
    except SchemaError as e:
        raise PayloadValidationError(
            "Response does not match the recommendation schema",
            {"errors": e.error_count()},
        ) from e

    items = payload.recommendations
    if len(items) != expected_count:
        raise PayloadValidationError(
            "Wrong number of recommendations",
            {"expected": expected_count, "actual": len(items)},
        )
    titles = {item.title.casefold() for item in items}
    if len(titles) != len(items):
        raise PayloadValidationError("Duplicate recommendation titles")

    confidence = payload.confidence
    if confidence is not None:
        confidence = min(1.0, max(0.0, confidence))

    return ParsedRecommendations(
        items=[
            RecommendationItem(
                title=item.title,
                description=item.description,
                type=item.type,
                duration=item.duration,
                match_reason=item.match_reason,
                source=item.source,
                year=item.year,
                search_terms=item.search_terms,
                url=item.url,
            )
            for item in items
        ],
        reasoning=payload.reasoning,
        confidence=confidence,
    )
