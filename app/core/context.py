"""Request context: validation and derived signals (device, time of day)."""

from datetime import datetime

from app.errors import ValidationError

CONTEXT_KEYS = ("device", "time_of_day", "referrer", "user_agent")
DEVICE_TYPES = ("mobile", "tablet", "desktop", "unknown")
TIME_OF_DAY = ("morning", "daytime", "evening", "night")
MAX_CONTEXT_VALUE_LENGTH = 512


def detect_device(user_agent: str | None) -> str:
    """Classify a User-Agent string."""
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    if "ipad" in ua or "tablet" in ua:
        return "tablet"
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return "mobile"
    return "desktop"


def time_of_day_for(hour: int) -> str:
    """Bucket an hour of the day (0-23)."""
    if 5 <= hour < 9:
        return "morning"
    if 9 <= hour < 17:
        return "daytime"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def build_context(raw: dict[str, str] | None, now: datetime | None = None) -> dict[str, str]:
    """Validate caller-supplied context and fill in derived signals.

    Args:
        raw: Context as sent by the caller (may be empty)
        now: Local time used when ``time_of_day`` is missing

    Returns:
        Normalized context with ``device`` and ``time_of_day`` always set

    Raises:
        ValidationError: On unknown keys, non-string values or bad enums
    """
    raw = raw or {}
    unknown = sorted(set(raw) - set(CONTEXT_KEYS))
    if unknown:
        raise ValidationError("Unknown context keys", {"keys": unknown})

    context: dict[str, str] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if not isinstance(value, str) or len(value) > MAX_CONTEXT_VALUE_LENGTH:
            raise ValidationError(f"Invalid context value for {key}", {"key": key})
        context[key] = value

    device = context.get("device")
    if device is None:
        context["device"] = detect_device(context.get("user_agent"))
    elif device not in DEVICE_TYPES:
        raise ValidationError("Invalid device", {"device": device, "allowed": list(DEVICE_TYPES)})

    time_of_day = context.get("time_of_day")
    if time_of_day is None:
        context["time_of_day"] = time_of_day_for((now or datetime.now()).hour)
    elif time_of_day not in TIME_OF_DAY:
        raise ValidationError(
            "Invalid time_of_day", {"timeOfDay": time_of_day, "allowed": list(TIME_OF_DAY)}
        )

    return context
