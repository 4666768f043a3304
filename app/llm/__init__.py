"""LLM module for the recommendation generation service."""

from app.llm.adapter import RecommendationGenerator
from app.llm.llm_adapter import LLMDisabledError, ProviderError, ProviderRateLimitError, generate_text

__all__ = [
    "RecommendationGenerator",
    "generate_text",
    "LLMDisabledError",
    "ProviderError",
    "ProviderRateLimitError",
]
