"""Shared-state resilience primitives: circuit breaker and rate limiter."""

from app.resilience.breaker import BreakerSnapshot, BreakerState, CircuitBreaker
from app.resilience.rate_limiter import RateLimitDecision, RateLimiter
from app.resilience.store import MemoryControlStore, SqlControlStore, VersionedStore

__all__ = [
    # Stores
    "VersionedStore",
    "MemoryControlStore",
    "SqlControlStore",
    # Breaker
    "CircuitBreaker",
    "BreakerState",
    "BreakerSnapshot",
    # Rate limiting
    "RateLimiter",
    "RateLimitDecision",
]
