"""Core elicitation engine: contracts, entropy model, domains and fallback.

Modules that touch storage (selector, orchestrator, flow) are imported by
their full path to keep this package importable from the storage layer.
"""

from app.core.context import build_context, detect_device, time_of_day_for
from app.core.contracts import (
    Choice,
    Err,
    GenerationClient,
    GenerationRequest,
    Ok,
    Phase,
    Provenance,
    Question,
    QuestionOption,
    QuestionType,
    RecommendationItem,
    RecommendationResult,
    SessionState,
)
from app.core.domains import DOMAINS, DomainSpec, get_domain, list_domains
from app.core.entropy import (
    EntropyModel,
    estimate_question_gain,
    initial_entropy,
    recommendation_confidence,
    remaining_entropy,
    should_stop,
)
from app.core.fallback import fallback_recommendations
from app.core.fingerprint import compute_fingerprint, session_fingerprint

__all__ = [
    # Contracts/Types
    "Choice",
    "Err",
    "GenerationClient",
    "GenerationRequest",
    "Ok",
    "Phase",
    "Provenance",
    "Question",
    "QuestionOption",
    "QuestionType",
    "RecommendationItem",
    "RecommendationResult",
    "SessionState",
    # Domains
    "DOMAINS",
    "DomainSpec",
    "get_domain",
    "list_domains",
    # Entropy
    "EntropyModel",
    "initial_entropy",
    "remaining_entropy",
    "should_stop",
    "estimate_question_gain",
    "recommendation_confidence",
    # Context and fingerprint
    "build_context",
    "detect_device",
    "time_of_day_for",
    "compute_fingerprint",
    "session_fingerprint",
    # Fallback
    "fallback_recommendations",
]
