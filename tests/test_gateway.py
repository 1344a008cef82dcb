"""Tests for the AI gateway client and its provider adapters."""
from __future__ import annotations

import json

import httpx
import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from longtrip.core.config import ApiSettings, GatewayConfig, PLACEHOLDER_API_KEY
from longtrip.core.errors import (
    CredentialError,
    FatalError,
    GatewaySuccess,
    MalformedResponseError,
    TransientError,
    TransientTransportError,
)
from longtrip.core.post_processing import STRUCTURED_OUTPUT_INSTRUCTIONS
from longtrip.services.gateway import (
    AIGatewayClient,
    ChatModelProvider,
    GeminiProvider,
    GenerationOptions,
    OpenRouterProvider,
    create_gateway_client,
)


def gemini_body(text: str, finish_reason: str = "STOP", total_tokens: int | None = 42) -> dict:
    body = {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}]}
    if total_tokens is not None:
        body["usageMetadata"] = {"totalTokenCount": total_tokens}
    return body


class Backend:
    """Scripted ``httpx.MockTransport`` handler that records requests."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def make_gateway(backend, provider=None, api_key="test-key", sleep=None, **config) -> AIGatewayClient:
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return AIGatewayClient(
        provider or GeminiProvider(),
        api_key,
        config=GatewayConfig(**config),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend)),
        **kwargs,
    )


@pytest.mark.parametrize("api_key", [None, "", PLACEHOLDER_API_KEY])
async def test_missing_key_is_fatal_without_network(api_key):
    backend = Backend(httpx.Response(200, json=gemini_body("unused")))
    gateway = make_gateway(backend, api_key=api_key)

    result = await gateway.call("flash", "Plan my trip")

    assert isinstance(result, FatalError)
    assert isinstance(result.error, CredentialError)
    assert result.ok is False
    assert backend.requests == []
    with pytest.raises(CredentialError):
        await gateway.call_or_raise("flash", "Plan my trip")
    assert backend.requests == []


async def test_gemini_success_normalises_response():
    backend = Backend(httpx.Response(200, json=gemini_body("Day 1: arrive in Tokyo")))
    gateway = make_gateway(backend)

    result = await gateway.call(
        "flash", "Plan day 1", GenerationOptions(max_output_tokens=3000, temperature=0.7)
    )

    assert isinstance(result, GatewaySuccess)
    assert result.attempts == 1
    response = result.response
    assert response.content == "Day 1: arrive in Tokyo"
    assert response.tokens_used == 42
    assert response.model == "gemini-2.5-flash"
    assert response.is_structured is False

    request = backend.requests[0]
    assert request.url.path.endswith("/gemini-2.5-flash:generateContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    payload = backend.payload()
    assert payload["contents"][0]["parts"][0]["text"] == "Plan day 1"
    assert payload["generationConfig"]["maxOutputTokens"] == 3000
    assert payload["generationConfig"]["temperature"] == 0.7
    assert payload["generationConfig"]["topK"] == 40
    assert "responseMimeType" not in payload["generationConfig"]
    assert len(payload["safetySettings"]) == 4


async def test_pro_tier_selects_pro_model():
    backend = Backend(httpx.Response(200, json=gemini_body("ok")))
    result = await make_gateway(backend).call("pro", "prompt")
    assert result.response.model == "gemini-2.5-pro"


async def test_token_usage_falls_back_to_character_estimate():
    backend = Backend(httpx.Response(200, json=gemini_body("abcdefgh", total_tokens=None)))
    result = await make_gateway(backend).call("flash", "abcd")
    # ceil((4 + 8) / 4)
    assert result.response.tokens_used == 3


async def test_retry_after_server_error(recording_sleep):
    backend = Backend(
        httpx.Response(503, text="overloaded"),
        httpx.Response(200, json=gemini_body("recovered")),
    )
    gateway = make_gateway(backend, sleep=recording_sleep)

    result = await gateway.call("flash", "prompt")

    assert isinstance(result, GatewaySuccess)
    assert result.attempts == 2
    assert result.response.content == "recovered"
    assert recording_sleep.delays == [2]
    assert len(backend.requests) == 2


async def test_exhausted_retries_return_transient_error(recording_sleep):
    backend = Backend(httpx.Response(503, text="overloaded"))
    gateway = make_gateway(backend, sleep=recording_sleep, max_attempts=3)

    result = await gateway.call("flash", "prompt")

    assert isinstance(result, TransientError)
    assert result.attempts == 3
    assert isinstance(result.error, TransientTransportError)
    assert result.error.status_code == 503
    assert recording_sleep.delays == [2, 4]
    assert len(backend.requests) == 3
    with pytest.raises(TransientTransportError):
        await gateway.call_or_raise("flash", "prompt")


async def test_connection_errors_are_retried(recording_sleep):
    backend = Backend(
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json=gemini_body("ok")),
    )
    result = await make_gateway(backend, sleep=recording_sleep).call("flash", "prompt")
    assert isinstance(result, GatewaySuccess)
    assert recording_sleep.delays == [2]


@pytest.mark.parametrize("finish_reason", ["SAFETY", "RECITATION"])
async def test_blocked_content_is_malformed(finish_reason, recording_sleep):
    backend = Backend(httpx.Response(200, json=gemini_body("", finish_reason=finish_reason)))
    result = await make_gateway(backend, sleep=recording_sleep).call("flash", "prompt")

    assert isinstance(result, TransientError)
    assert isinstance(result.error, MalformedResponseError)
    assert len(backend.requests) == 2


async def test_empty_candidates_are_malformed(recording_sleep):
    backend = Backend(httpx.Response(200, json={"candidates": []}))
    result = await make_gateway(backend, sleep=recording_sleep, max_attempts=1).call("flash", "prompt")
    assert isinstance(result.error, MalformedResponseError)
    assert recording_sleep.delays == []


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": [{"content": {"parts": [{"text": None}]}}]},
        {"candidates": ["not-an-object"]},
        {"candidates": [{"content": "plain text"}]},
        {"candidates": {"first": {}}},
    ],
)
async def test_odd_gemini_shapes_are_retried_as_malformed(body, recording_sleep):
    backend = Backend(httpx.Response(200, json=body))
    result = await make_gateway(backend, sleep=recording_sleep).call("flash", "prompt")

    assert isinstance(result, TransientError)
    assert isinstance(result.error, MalformedResponseError)
    assert result.attempts == 2
    assert len(backend.requests) == 2
    assert recording_sleep.delays == [2]


async def test_null_parts_are_skipped_and_odd_usage_is_estimated():
    body = {
        "candidates": [{"content": {"parts": [{"text": None}, {"text": "hello"}]}}],
        "usageMetadata": "n/a",
    }
    backend = Backend(httpx.Response(200, json=body))
    result = await make_gateway(backend).call("flash", "prompt")

    assert isinstance(result, GatewaySuccess)
    assert result.response.content == "hello"
    # ceil((len("prompt") + len("hello")) / 4)
    assert result.response.tokens_used == 3


async def test_odd_openrouter_shapes_are_malformed(recording_sleep):
    backend = Backend(httpx.Response(200, json={"choices": [{"message": {"content": ["a", "b"]}}]}))
    provider = OpenRouterProvider()
    result = await make_gateway(backend, provider=provider, sleep=recording_sleep, max_attempts=1).call(
        "default", "prompt"
    )
    assert isinstance(result, TransientError)
    assert isinstance(result.error, MalformedResponseError)


async def test_structured_output_uses_native_json_mode_and_recovers_fenced_json():
    text = '```json\n{"days": [{"activities": []}]}\n```'
    backend = Backend(httpx.Response(200, json=gemini_body(text)))
    schema = {"type": "OBJECT", "properties": {"days": {"type": "ARRAY"}}}

    result = await make_gateway(backend).call(
        "flash", "Plan", GenerationOptions(structured=True, response_schema=schema)
    )

    assert result.response.content == {"days": [{"activities": []}]}
    assert result.response.is_structured is True
    generation_config = backend.payload()["generationConfig"]
    assert generation_config["responseMimeType"] == "application/json"
    assert generation_config["responseSchema"] == schema
    # Native JSON providers get the prompt unchanged.
    assert backend.payload()["contents"][0]["parts"][0]["text"] == "Plan"


async def test_structured_output_repairs_truncated_json():
    text = '{"days": [{"title": "Arrival"}, {"title": "Shibu'
    backend = Backend(httpx.Response(200, json=gemini_body(text, finish_reason="MAX_TOKENS")))

    result = await make_gateway(backend).call("flash", "Plan", GenerationOptions(structured=True))

    assert result.response.content == {"days": [{"title": "Arrival"}]}
    assert result.response.truncated is True


async def test_unrecoverable_structured_output_is_retried(recording_sleep):
    backend = Backend(httpx.Response(200, json=gemini_body("Sorry, I cannot help with that.")))
    result = await make_gateway(backend, sleep=recording_sleep).call(
        "flash", "Plan", GenerationOptions(structured=True)
    )
    assert isinstance(result, TransientError)
    assert isinstance(result.error, MalformedResponseError)
    assert recording_sleep.delays == [2]


async def test_openrouter_structured_output_enhances_prompt():
    body = {
        "model": "anthropic/claude-3.5-sonnet",
        "choices": [{"message": {"content": 'Here you go: {"days": []}'}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    }
    backend = Backend(httpx.Response(200, json=body))
    gateway = make_gateway(backend, provider=OpenRouterProvider(), api_key="or-key")

    result = await gateway.call("default", "Plan", GenerationOptions(structured=True, max_output_tokens=1400))

    assert result.response.content == {"days": []}
    assert result.response.tokens_used == 15
    request = backend.requests[0]
    assert request.url.path == "/api/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer or-key"
    assert request.headers["x-title"] == "LongTrip"
    payload = backend.payload()
    assert payload["model"] == "anthropic/claude-3.5-sonnet"
    assert payload["max_tokens"] == 1400
    assert payload["stream"] is False
    assert STRUCTURED_OUTPUT_INSTRUCTIONS in payload["messages"][0]["content"]


def test_openrouter_model_aliases():
    provider = OpenRouterProvider(default_model="openai/gpt-4o-mini")
    assert provider.model_name("flash") == "openai/gpt-4o-mini"
    assert provider.model_name("claude-haiku") == "anthropic/claude-3-haiku"
    assert provider.model_name("mistralai/mistral-large") == "mistralai/mistral-large"


async def test_chat_model_provider_needs_no_api_key():
    model = FakeListChatModel(responses=["Day 1: Meiji Shrine"])
    gateway = AIGatewayClient(ChatModelProvider(model, label="fake"))

    assert gateway.has_valid_api_key() is True
    result = await gateway.call("flash", "Plan day 1")

    assert isinstance(result, GatewaySuccess)
    assert result.response.content == "Day 1: Meiji Shrine"
    assert result.response.model == "fake"
    assert result.response.tokens_used > 0


async def test_chat_model_provider_structured_output():
    model = FakeListChatModel(responses=['```json\n{"days": [{"notes": "arrival"}]}\n```'])
    gateway = AIGatewayClient(ChatModelProvider(model))

    response = await gateway.call_or_raise("flash", "Plan", GenerationOptions(structured=True))

    assert response.content == {"days": [{"notes": "arrival"}]}


def test_health_status_reports_configuration():
    gateway = AIGatewayClient(GeminiProvider(), None)
    status = gateway.health_status()
    assert status == {
        "provider": "gemini",
        "api_key_configured": False,
        "native_json": True,
        "max_attempts": 2,
        "request_timeout": 60.0,
    }


async def test_gateway_closes_only_its_own_client():
    external = httpx.AsyncClient()
    async with AIGatewayClient(GeminiProvider(), "key", http_client=external):
        pass
    assert external.is_closed is False
    await external.aclose()

    gateway = AIGatewayClient(GeminiProvider(), "key")
    owned = gateway._http()
    await gateway.aclose()
    assert owned.is_closed is True


def test_create_gateway_client_from_settings():
    settings = ApiSettings(gemini_api_key="g-key", openrouter_api_key="o-key")
    assert isinstance(create_gateway_client(settings).provider, GeminiProvider)
    openrouter = create_gateway_client(settings, provider="openrouter")
    assert isinstance(openrouter.provider, OpenRouterProvider)
    assert openrouter.api_key == "o-key"
    with pytest.raises(ValueError):
        create_gateway_client(settings, provider="unknown")
