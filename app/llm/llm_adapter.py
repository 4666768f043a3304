"""LLM adapter for text generation, supporting OpenAI and Anthropic APIs."""

import asyncio

import httpx

from app.config import Config, config
from app.errors import UpstreamServiceError
from app.logging import get_logger

logger = get_logger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
BASE_BACKOFF = 0.5


class LLMDisabledError(UpstreamServiceError):
    """Raised when the LLM is disabled or has no credentials."""

    code = "LLM_DISABLED"


class ProviderError(UpstreamServiceError):
    """Error response from an LLM provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, {"statusCode": status_code} if status_code else None)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded."""

    def __init__(self, retry_after: float | None = None) -> None:
        super().__init__("Provider rate limit exceeded", status_code=429)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


def _raise_for_error(response: httpx.Response, provider: str) -> None:
    if response.status_code == 429:
        raise ProviderRateLimitError(retry_after=_retry_after(response))

    if response.status_code >= 500:
        raise ProviderError(
            f"{provider} server error: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        error_msg = response.json().get("error", {}).get("message", f"HTTP {response.status_code}")
    except ValueError:
        error_msg = f"HTTP {response.status_code}"
    raise ProviderError(f"{provider}: {error_msg}", status_code=response.status_code)


async def _call_openai(
    client: httpx.AsyncClient,
    cfg: Config,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
    headers: dict[str, str],
) -> str:
    """Call OpenAI-compatible chat completions API."""
    payload = {
        "model": cfg.openai_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": temperature,
        "response_format": {"type": "json_object"},
    }
    response = await client.post(
        OPENAI_API_URL,
        headers={"Authorization": f"Bearer {cfg.openai_api_key}", **headers},
        json=payload,
    )
    if response.status_code != 200:
        _raise_for_error(response, "OpenAI")

    data = response.json()
    choices = data.get("choices", [])
    if not choices:
        raise ProviderError("Empty response from OpenAI")
    logger.debug(f"OpenAI tokens: {data.get('usage', {}).get('total_tokens', 'N/A')}")
    return (choices[0].get("message", {}).get("content") or "").strip()


async def _call_anthropic(
    client: httpx.AsyncClient,
    cfg: Config,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
    headers: dict[str, str],
) -> str:
    """Call Anthropic Messages API."""
    payload = {
        "model": cfg.anthropic_model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "system": system_prompt,
        "messages": [{"role": "user", "content": user_prompt}],
    }
    response = await client.post(
        ANTHROPIC_API_URL,
        headers={
            "x-api-key": cfg.anthropic_api_key or "",
            "anthropic-version": "2023-06-01",
            **headers,
        },
        json=payload,
    )
    if response.status_code != 200:
        _raise_for_error(response, "Anthropic")

    data = response.json()
    text_parts = [
        block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
    ]
    usage = data.get("usage", {})
    logger.debug(
        f"Anthropic tokens: in={usage.get('input_tokens', '?')}, "
        f"out={usage.get('output_tokens', '?')}"
    )
    return "\n".join(text_parts).strip()


async def generate_text(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 1000,
    temperature: float = 0.3,
    idempotency_key: str | None = None,
    cfg: Config | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Generate text using the configured LLM provider.

    Retries rate limits, server errors and transport errors with
    exponential backoff. Every attempt carries the same idempotency key.

    Args:
        system_prompt: System instructions for the model
        user_prompt: User message/request
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature
        idempotency_key: Key sent with every attempt of this request
        cfg: Configuration (defaults to the application config)
        client: HTTP client to use (a short-lived one is created otherwise)

    Returns:
        Generated text

    Raises:
        LLMDisabledError: If the LLM is disabled or not configured
        ProviderError: On a non-retryable error or when retries run out
    """
    cfg = cfg or config
    if not cfg.llm_enabled:
        raise LLMDisabledError("LLM is disabled in configuration")

    if cfg.llm_provider == "anthropic":
        if not cfg.anthropic_api_key:
            raise LLMDisabledError("ANTHROPIC_API_KEY is not configured")
        call_fn = _call_anthropic
        provider_label = f"Anthropic/{cfg.anthropic_model}"
    else:
        if not cfg.openai_api_key:
            raise LLMDisabledError("OPENAI_API_KEY is not configured")
        call_fn = _call_openai
        provider_label = f"OpenAI/{cfg.openai_model}"

    headers = {"Content-Type": "application/json"}
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key

    attempts = max(1, cfg.llm_max_retries + 1)
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=cfg.generation_timeout_seconds)
    last_error: Exception | None = None

    try:
        for attempt in range(attempts):
            try:
                return await call_fn(
                    client, cfg, system_prompt, user_prompt, max_tokens, temperature, headers
                )
            except ProviderError as e:
                if not e.retryable:
                    raise
                last_error = e
                wait_time = getattr(e, "retry_after", None) or BASE_BACKOFF * (2 ** attempt)
            except httpx.HTTPError as e:
                last_error = e
                wait_time = BASE_BACKOFF * (2 ** attempt)

            logger.warning(
                f"{provider_label} attempt {attempt + 1}/{attempts} failed: {last_error}"
            )
            if attempt < attempts - 1:
                await asyncio.sleep(wait_time)
    finally:
        if owns_client:
            await client.aclose()

    raise ProviderError(f"Max retries exceeded ({provider_label}): {last_error}")
