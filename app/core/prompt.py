"""Preference summaries and prompts for the generation service."""

import hashlib
import json
from datetime import datetime, timezone

from app.core.contracts import GenerationRequest, SessionState
from app.core.domains import DomainSpec

SYSTEM_PROMPT = (
    "You are a recommendation engine that understands user preferences through a "
    "short series of binary choices. You recommend specific, currently available "
    "content that precisely matches those preferences. You reply with JSON only."
)

# Wording that differs per domain; anything not listed uses "general".
_DOMAIN_WORDING = {
    "general": {
        "noun": "pieces of content",
        "types": "video/article/podcast/interactive",
        "extra": "Prefer content that is discoverable through search and not behind paywalls.",
    },
    "movies": {
        "noun": "films",
        "types": "movie",
        "extra": "Recommend feature films that are easy to find on common streaming services. "
        "Include the release year.",
    },
}


def infer_engagement_level(session: SessionState) -> str:
    """Rough engagement style from how long answers took."""
    times = [c.response_time_ms for c in session.choices if c.response_time_ms is not None]
    if not session.choices:
        return "new_user"
    if not times:
        return "unknown"
    avg_ms = sum(times) / len(times)
    if avg_ms > 15_000:
        return "thoughtful"
    if avg_ms > 5_000:
        return "engaged"
    return "quick_decision"


def build_profile(session: SessionState, domain: DomainSpec) -> dict[str, str]:
    profile = {
        "branch": domain.branch_for(session).name,
        "engagement": infer_engagement_level(session),
        "device": session.context.get("device", "unknown"),
        "timeOfDay": session.context.get("time_of_day", "unknown"),
    }
    pivot_choice = session.get_choice(domain.pivot_question_id)
    if pivot_choice:
        profile["pivot"] = pivot_choice
    return profile


def describe_preferences(session: SessionState) -> str:
    """Natural-language decision path built from the stored question and option labels."""
    if not session.choices:
        return "No choices made"
    lines = []
    for index, choice in enumerate(session.choices, start=1):
        question = choice.question_text or choice.question_id
        answer = choice.choice_text or choice.choice
        lines.append(f"{index}. {question} -> {answer}")
    return "\n".join(lines)


def idempotency_key(session: SessionState, fingerprint: str) -> str:
    """Stable key so provider-side retries of the same request are deduplicated."""
    return hashlib.sha256(f"{session.session_id}|{fingerprint}".encode()).hexdigest()[:32]


def build_generation_request(
    session: SessionState,
    domain: DomainSpec,
    count: int,
    fingerprint: str,
) -> GenerationRequest:
    return GenerationRequest(
        domain=domain.id,
        count=count,
        choices=[
            {
                "questionId": c.question_id,
                "question": c.question_text or c.question_id,
                "choice": c.choice,
                "answer": c.choice_text or c.choice,
            }
            for c in session.choices
        ],
        profile=build_profile(session, domain),
        description=describe_preferences(session),
        idempotency_key=idempotency_key(session, fingerprint),
    )


def build_user_prompt(request: GenerationRequest, now: datetime | None = None) -> str:
    """Render the user message for a generation request.

    Args:
        request: Preference summary
        now: Timestamp shown to the model

    Returns:
        Prompt asking for exactly ``request.count`` items as JSON
    """
    wording = _DOMAIN_WORDING.get(request.domain, _DOMAIN_WORDING["general"])
    now = now or datetime.now(timezone.utc)
    example_item = {
        "title": "specific title",
        "description": "2-3 sentences on why this matches their preferences",
        "type": wording["types"],
        "duration": "estimated time commitment",
        "matchReason": "the preference elements this satisfies",
        "source": "platform or website",
        "year": 2020,
        "searchTerms": "terms to find this content",
        "url": None,
    }
    response_format = json.dumps(
        {"recommendations": [example_item], "reasoning": "brief strategy", "confidence": 0.8},
        indent=2,
    )

    return f"""Based on the following preference analysis, recommend exactly {request.count} {wording["noun"]}.

PREFERENCE PROFILE:
{json.dumps(request.profile, indent=2, sort_keys=True)}

DECISION PATH:
{request.description}

CONTEXT:
- Current time: {now.isoformat()}

REQUIREMENTS:
1. Provide exactly {request.count} recommendations with distinct titles.
2. Every recommendation needs title, description, type, duration and matchReason.
3. Recommendations should be diverse but consistent with the stated preferences.
4. {wording["extra"]}
5. "confidence" is your confidence in the whole set, between 0 and 1.

RESPONSE FORMAT (valid JSON only, nothing else):
{response_format}"""
