"""Error taxonomy shared by the engine and the HTTP surface."""

from typing import Any


class AppError(Exception):
    """Base class for errors that carry a stable code and HTTP status."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(AppError):
    """Malformed turn input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class SessionNotFound(AppError):
    """Unknown or expired session id."""

    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Session not found or expired", {"sessionId": session_id})
        self.session_id = session_id


class RateLimitExceeded(AppError):
    """Client exceeded its admission window."""

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__("Rate limit exceeded", {"retryAfter": retry_after})
        self.retry_after = retry_after


class CatalogUnavailable(AppError):
    """Question catalog could not be reached."""

    code = "CATALOG_UNAVAILABLE"
    status_code = 503


class UpstreamServiceError(AppError):
    """Generation service call failed or timed out."""

    code = "UPSTREAM_SERVICE_ERROR"
    status_code = 502


class BreakerOpenError(UpstreamServiceError):
    """Call short-circuited by an open circuit breaker."""

    code = "CIRCUIT_OPEN"

    def __init__(self, name: str, retry_after: float) -> None:
        super().__init__(
            f"Circuit breaker '{name}' is open",
            {"breaker": name, "retryAfter": round(retry_after, 3)},
        )
        self.retry_after = retry_after


class PayloadValidationError(AppError):
    """Generation service returned a malformed payload."""

    code = "PAYLOAD_VALIDATION_ERROR"
    status_code = 502


class InternalError(AppError):
    """Unexpected failure; the caller must retry the turn."""

    code = "INTERNAL_ERROR"
    status_code = 500
