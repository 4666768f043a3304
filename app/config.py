"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Service settings
    host: str
    port: int
    database_url: str
    admin_token: str | None
    log_level: str

    # Elicitation settings
    max_questions_per_session: int
    entropy_stop_threshold: float
    entropy_reduction_per_choice: float
    default_archetype_count: int
    candidate_pool_limit: int
    session_ttl_seconds: int

    # Recommendation settings
    recs_target_count: int
    cache_ttl_seconds: int
    fallback_cache_ttl_seconds: int
    fallback_confidence: float

    # Circuit breaker
    breaker_threshold: int
    breaker_cooldown_seconds: float
    breaker_trial_timeout_seconds: float
    cas_max_retries: int

    # Rate limiting
    rate_limit_per_window: int
    rate_limit_window_ms: int

    # Generation service (LLM)
    llm_enabled: bool
    llm_provider: Literal["anthropic", "openai"]
    anthropic_api_key: str | None
    anthropic_model: str
    openai_api_key: str | None
    openai_model: str
    generation_timeout_seconds: float
    llm_max_retries: int

    # Background jobs
    jobs_enabled: bool
    purge_interval_minutes: int
    question_stats_interval_hours: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        anthropic_api_key = os.getenv("ANTHROPIC_API_KEY") or None
        llm_provider = os.getenv(
            "LLM_PROVIDER", "anthropic" if anthropic_api_key else "openai"
        ).lower()
        if llm_provider not in ("anthropic", "openai"):
            raise ConfigurationError("LLM_PROVIDER must be 'anthropic' or 'openai'")

        cfg = cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./whatnext.db"),
            admin_token=os.getenv("ADMIN_TOKEN") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            max_questions_per_session=_env_int("MAX_QUESTIONS_PER_SESSION", 6),
            entropy_stop_threshold=_env_float("ENTROPY_STOP_THRESHOLD", 0.3),
            entropy_reduction_per_choice=_env_float("ENTROPY_REDUCTION_PER_CHOICE", 0.5),
            default_archetype_count=_env_int("DEFAULT_ARCHETYPE_COUNT", 8),
            candidate_pool_limit=_env_int("CANDIDATE_POOL_LIMIT", 10),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 3600),
            recs_target_count=_env_int("RECS_TARGET_COUNT", 3),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", 6 * 60 * 60),
            fallback_cache_ttl_seconds=_env_int("FALLBACK_CACHE_TTL_SECONDS", 15 * 60),
            fallback_confidence=_env_float("FALLBACK_CONFIDENCE", 0.6),
            breaker_threshold=_env_int("BREAKER_THRESHOLD", 5),
            breaker_cooldown_seconds=_env_float("BREAKER_COOLDOWN_SECONDS", 60.0),
            breaker_trial_timeout_seconds=_env_float("BREAKER_TRIAL_TIMEOUT_SECONDS", 120.0),
            cas_max_retries=_env_int("CAS_MAX_RETRIES", 5),
            rate_limit_per_window=_env_int("RATE_LIMIT_PER_WINDOW", 60),
            rate_limit_window_ms=_env_int("RATE_LIMIT_WINDOW_MS", 60_000),
            llm_enabled=_env_bool("LLM_ENABLED", True),
            llm_provider=llm_provider,  # type: ignore[arg-type]
            anthropic_api_key=anthropic_api_key,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-mini"),
            generation_timeout_seconds=_env_float("GENERATION_TIMEOUT_SECONDS", 20.0),
            llm_max_retries=_env_int("LLM_MAX_RETRIES", 2),
            jobs_enabled=_env_bool("JOBS_ENABLED", True),
            purge_interval_minutes=_env_int("PURGE_INTERVAL_MINUTES", 15),
            question_stats_interval_hours=_env_int("QUESTION_STATS_INTERVAL_HOURS", 6),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Reject values the engine cannot run with."""
        if self.max_questions_per_session < 1:
            raise ConfigurationError("MAX_QUESTIONS_PER_SESSION must be >= 1")
        if self.entropy_reduction_per_choice <= 0:
            raise ConfigurationError("ENTROPY_REDUCTION_PER_CHOICE must be positive")
        if self.entropy_stop_threshold < 0:
            raise ConfigurationError("ENTROPY_STOP_THRESHOLD must be >= 0")
        if self.default_archetype_count < 2:
            raise ConfigurationError("DEFAULT_ARCHETYPE_COUNT must be >= 2")
        if not 1 <= self.recs_target_count <= 5:
            raise ConfigurationError("RECS_TARGET_COUNT must be between 1 and 5")
        if not 0.0 <= self.fallback_confidence <= 1.0:
            raise ConfigurationError("FALLBACK_CONFIDENCE must be within [0, 1]")
        if self.breaker_threshold < 1:
            raise ConfigurationError("BREAKER_THRESHOLD must be >= 1")
        if self.breaker_cooldown_seconds <= 0:
            raise ConfigurationError("BREAKER_COOLDOWN_SECONDS must be positive")
        if self.rate_limit_per_window < 1 or self.rate_limit_window_ms < 1:
            raise ConfigurationError("Rate limit and window must be positive")
        if self.generation_timeout_seconds <= 0:
            raise ConfigurationError("GENERATION_TIMEOUT_SECONDS must be positive")


config = Config.from_env()
