"""Storage module for database operations."""

from app.storage.db import Base, close_engine, create_schema, get_engine, get_session_factory
from app.storage.json_utils import safe_json_dumps, safe_json_loads
from app.storage.models import (
    CachedRecommendation,
    ControlState,
    Event,
    QuestionPerformance,
    QuestionRow,
    SessionRecord,
)
from app.storage.repo_cache import CacheRepo
from app.storage.repo_events import EventsRepo
from app.storage.repo_questions import QuestionsRepo
from app.storage.repo_sessions import SessionsRepo
from app.storage.seed import seed_catalog

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "create_schema",
    "close_engine",
    # JSON utilities
    "safe_json_dumps",
    "safe_json_loads",
    # Models
    "SessionRecord",
    "QuestionRow",
    "QuestionPerformance",
    "CachedRecommendation",
    "ControlState",
    "Event",
    # Repositories
    "SessionsRepo",
    "QuestionsRepo",
    "CacheRepo",
    "EventsRepo",
    # Seed data
    "seed_catalog",
]
