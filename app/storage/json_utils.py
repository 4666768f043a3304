"""JSON helpers for text columns."""

import json
from typing import Any

from app.logging import get_logger

logger = get_logger(__name__)


def safe_json_dumps(data: Any, default: str = "{}") -> str:
    """Serialize data to a compact JSON string, returning default on failure.

    Args:
        data: Data to serialize
        default: String to return when data is None or not serializable

    Returns:
        JSON string or default value
    """
    if data is None:
        return default

    try:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Failed to serialize JSON: {e}")
        return default


def safe_json_loads(text: str | None, default: Any = None) -> Any:
    """Parse a JSON column, returning default (an empty dict) on failure."""
    if default is None:
        default = {}

    if not text:
        return default

    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"Failed to parse JSON: {e}")
        return default
