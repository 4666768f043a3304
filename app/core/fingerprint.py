"""Preference fingerprint used as the recommendation cache key."""

import hashlib

from app.core.contracts import SessionState

FINGERPRINT_PREFIX = "recs:"


def coarse_context(context: dict[str, str]) -> str:
    """Reduce context to the signals that change recommendations.

    Only device and an evening/day split are kept; referrer and user agent
    are excluded so that equivalent sessions share cache entries.
    """
    device = context.get("device") or "unknown"
    daypart = "evening" if context.get("time_of_day") in ("evening", "night") else "day"
    return f"{device}|{daypart}"


def compute_fingerprint(domain: str, choices: dict[str, str], context: dict[str, str]) -> str:
    """Hash a set of answers independent of the order they were given in.

    Args:
        domain: Domain ID
        choices: Mapping of question ID to chosen option ID
        context: Session context

    Returns:
        Cache key such as ``recs:<sha256 hex>``
    """
    pairs = "|".join(sorted(f"{question_id}:{choice}" for question_id, choice in choices.items()))
    material = "\n".join((domain, pairs, coarse_context(context)))
    return FINGERPRINT_PREFIX + hashlib.sha256(material.encode()).hexdigest()


def session_fingerprint(session: SessionState) -> str:
    return compute_fingerprint(
        session.domain,
        {c.question_id: c.choice for c in session.choices},
        session.context,
    )
