"""Tests for the LLM adapter."""

import json
from dataclasses import replace

import httpx
import pytest

from app.config import config
from app.core.contracts import GenerationRequest
from app.llm import (
    LLMDisabledError,
    ProviderError,
    RecommendationGenerator,
    generate_text,
)

ANTHROPIC_OK = {
    "content": [{"type": "text", "text": '{"recommendations": [], "confidence": 0.5}'}],
    "usage": {"input_tokens": 10, "output_tokens": 5},
}


@pytest.fixture
def llm_config():
    return replace(
        config,
        llm_enabled=True,
        llm_provider="anthropic",
        anthropic_api_key="test-key",
        llm_max_retries=2,
    )


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("app.llm.llm_adapter.BASE_BACKOFF", 0)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_every_attempt_carries_the_idempotency_key(llm_config):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Idempotency-Key"))
        if len(seen) < 3:
            return httpx.Response(500, json={"error": {"message": "overloaded"}})
        return httpx.Response(200, json=ANTHROPIC_OK)

    async with _client(handler) as client:
        text = await generate_text("sys", "user", idempotency_key="recs:abc", cfg=llm_config, client=client)

    assert json.loads(text)["confidence"] == 0.5
    assert seen == ["recs:abc"] * 3


@pytest.mark.anyio
async def test_client_errors_are_not_retried(llm_config):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, json={"error": {"message": "bad request"}})

    async with _client(handler) as client:
        with pytest.raises(ProviderError) as exc_info:
            await generate_text("sys", "user", cfg=llm_config, client=client)

    assert calls == 1
    assert exc_info.value.status_code == 400
    assert "bad request" in exc_info.value.message


@pytest.mark.anyio
async def test_retries_run_out(llm_config):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(429, headers={"retry-after": "0"})

    async with _client(handler) as client:
        with pytest.raises(ProviderError, match="Max retries exceeded"):
            await generate_text("sys", "user", cfg=llm_config, client=client)

    assert calls == 3


@pytest.mark.anyio
async def test_transport_errors_are_retried(llm_config):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=ANTHROPIC_OK)

    async with _client(handler) as client:
        await generate_text("sys", "user", cfg=llm_config, client=client)

    assert calls == 2


@pytest.mark.anyio
async def test_openai_request_shape(llm_config):
    cfg = replace(llm_config, llm_provider="openai", openai_api_key="sk-test")
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"content": " {} "}}], "usage": {"total_tokens": 3}},
        )

    async with _client(handler) as client:
        text = await generate_text("sys", "user", cfg=cfg, client=client)

    assert text == "{}"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"]["messages"][0] == {"role": "system", "content": "sys"}
    assert captured["body"]["response_format"] == {"type": "json_object"}


@pytest.mark.anyio
async def test_disabled_or_unconfigured(llm_config):
    with pytest.raises(LLMDisabledError):
        await generate_text("sys", "user", cfg=replace(llm_config, llm_enabled=False))
    with pytest.raises(LLMDisabledError):
        await generate_text("sys", "user", cfg=replace(llm_config, anthropic_api_key=None))


@pytest.mark.anyio
async def test_generator_sends_preference_summary(llm_config):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["key"] = request.headers.get("Idempotency-Key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=ANTHROPIC_OK)

    request = GenerationRequest(
        domain="movies",
        count=3,
        choices=[{"questionId": "movie_mood", "question": "Mood?", "choice": "unwind", "answer": "Help me unwind"}],
        profile={"movie_mood": "unwind"},
        description="1. Mood? -> Help me unwind",
        idempotency_key="recs:movies:123",
    )
    async with _client(handler) as client:
        generator = RecommendationGenerator(llm_config, client=client)
        await generator.generate(request)

    assert captured["key"] == "recs:movies:123"
    assert "Help me unwind" in captured["body"]["messages"][0]["content"]
