"""Provider adapters: wire format in, normalised text and usage out.

Each adapter knows how to send one prompt to its backend and how to turn the
backend's native candidate/choice structure into plain text. Retries, JSON
recovery and credential checks live in ``AIGatewayClient``.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage

from longtrip.core.config import GatewayConfig
from longtrip.core.errors import MalformedResponseError, TransientTransportError
from longtrip.services.gateway.schemas import GenerationOptions

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

TRUNCATION_REASONS = frozenset({"MAX_TOKENS", "LENGTH"})


def estimate_tokens(prompt: str, content: str) -> int:
    """Four characters per token over prompt and completion."""

    return math.ceil((len(prompt) + len(content)) / 4)


@dataclass(slots=True)
class ProviderReply:
    content: str
    model: str
    finish_reason: str
    tokens_used: Optional[int] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason.upper() in TRUNCATION_REASONS


class Provider:
    """Base adapter. Subclasses implement ``send``."""

    name = "provider"
    native_json = False
    requires_api_key = True

    def model_name(self, model_tier: str) -> str:
        raise NotImplementedError

    async def send(
        self,
        http: Optional[httpx.AsyncClient],
        api_key: Optional[str],
        model_tier: str,
        prompt: str,
        options: GenerationOptions,
        config: GatewayConfig,
    ) -> ProviderReply:
        raise NotImplementedError


async def _post_json(
    http: httpx.AsyncClient, url: str, payload: Dict[str, Any], headers: Mapping[str, str]
) -> Dict[str, Any]:
    """POST ``payload`` and return the decoded body, mapping failures to gateway errors."""

    try:
        response = await http.post(url, json=payload, headers=dict(headers))
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.error("HTTP %s from %s: %s", status, url, exc.response.text[:500])
        raise TransientTransportError(f"HTTP {status} from provider", status_code=status) from exc
    except httpx.HTTPError as exc:
        logger.error("No usable response from %s: %s", url, exc)
        raise TransientTransportError(f"Transport error: {exc}") from exc

    try:
        data = response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise MalformedResponseError("Provider returned a non-JSON body") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Provider returned an unexpected body")
    return data


class GeminiProvider(Provider):
    """Google Gemini ``generateContent`` REST API (native JSON mode)."""

    name = "gemini"
    native_json = True

    def __init__(
        self,
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
        models: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.models = dict(models or {"flash": "gemini-2.5-flash", "pro": "gemini-2.5-pro"})

    def model_name(self, model_tier: str) -> str:
        return self.models.get(model_tier, self.models["flash"])

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/{model}:generateContent"

    def build_payload(
        self, prompt: str, options: GenerationOptions, config: GatewayConfig
    ) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {
            "temperature": options.temperature if options.temperature is not None else config.temperature,
            "topK": options.top_k or config.top_k,
            "topP": options.top_p or config.top_p,
            "maxOutputTokens": options.max_output_tokens or config.max_output_tokens,
        }
        if options.structured:
            generation_config["responseMimeType"] = "application/json"
            if options.response_schema:
                generation_config["responseSchema"] = options.response_schema
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
            "safetySettings": options.safety_settings or DEFAULT_SAFETY_SETTINGS,
        }

    def parse_response(self, data: Dict[str, Any], model: str, prompt: str) -> ProviderReply:
        try:
            return self._parse_candidates(data, model, prompt)
        except (TypeError, AttributeError, KeyError) as exc:
            raise MalformedResponseError(f"Unexpected Gemini response shape: {exc}") from exc

    def _parse_candidates(self, data: Dict[str, Any], model: str, prompt: str) -> ProviderReply:
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates, list):
            raise MalformedResponseError("Invalid response format - no candidates found")

        candidate = candidates[0] or {}
        if not isinstance(candidate, dict):
            raise MalformedResponseError("Invalid response format - candidate is not an object")
        finish_reason = str(candidate.get("finishReason") or "STOP")
        if finish_reason == "SAFETY":
            raise MalformedResponseError("Content was blocked by safety filters")
        if finish_reason == "RECITATION":
            raise MalformedResponseError("Content was blocked due to recitation concerns")
        if finish_reason != "STOP":
            logger.warning("Gemini finished with reason: %s", finish_reason)

        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
        if not content.strip():
            if finish_reason == "MAX_TOKENS":
                raise MalformedResponseError(
                    "Response truncated at start - increase token limit or simplify prompt"
                )
            raise MalformedResponseError("Provider returned empty content")

        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        tokens = usage.get("totalTokenCount") or usage.get("candidatesTokenCount")
        return ProviderReply(
            content=content,
            model=model,
            finish_reason=finish_reason,
            tokens_used=tokens if isinstance(tokens, int) and tokens > 0 else estimate_tokens(prompt, content),
        )

    async def send(self, http, api_key, model_tier, prompt, options, config) -> ProviderReply:
        model = self.model_name(model_tier)
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key or ""}
        data = await _post_json(http, self.endpoint(model), self.build_payload(prompt, options, config), headers)
        return self.parse_response(data, model, prompt)


class OpenRouterProvider(Provider):
    """OpenRouter chat-completions API (no native JSON mode)."""

    name = "openrouter"

    def __init__(
        self,
        *,
        default_model: str = "anthropic/claude-3.5-sonnet",
        base_url: str = "https://openrouter.ai/api/v1",
        site_name: str = "LongTrip",
        site_url: str = "https://localhost",
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.default_model = default_model
        self.base_url = base_url.rstrip("/")
        self.site_name = site_name
        self.site_url = site_url
        self.aliases = dict(
            aliases
            or {
                "claude-sonnet": "anthropic/claude-3.5-sonnet",
                "claude-haiku": "anthropic/claude-3-haiku",
                "gpt-4": "openai/gpt-4-turbo",
                "gpt-4-mini": "openai/gpt-4o-mini",
                "llama": "meta-llama/llama-3.1-70b-instruct",
                "gemini": "google/gemini-pro-1.5",
            }
        )

    def model_name(self, model_tier: str) -> str:
        if model_tier in ("default", "flash", "pro"):
            return self.default_model
        return self.aliases.get(model_tier, model_tier)

    def build_payload(
        self, model: str, prompt: str, options: GenerationOptions, config: GatewayConfig
    ) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature if options.temperature is not None else config.temperature,
            "max_tokens": options.max_output_tokens or config.max_output_tokens,
            "top_p": options.top_p or config.top_p,
            "stream": False,
        }

    def parse_response(self, data: Dict[str, Any], model: str, prompt: str) -> ProviderReply:
        try:
            return self._parse_choices(data, model, prompt)
        except (TypeError, AttributeError, KeyError) as exc:
            raise MalformedResponseError(f"Unexpected OpenRouter response shape: {exc}") from exc

    def _parse_choices(self, data: Dict[str, Any], model: str, prompt: str) -> ProviderReply:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices, list):
            raise MalformedResponseError("No choices returned from provider")

        choice = choices[0] or {}
        content = ((choice.get("message") or {}).get("content")) or ""
        if not isinstance(content, str):
            raise MalformedResponseError("Provider returned non-text content")
        if not content.strip():
            raise MalformedResponseError("Provider returned empty content")

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens")
        if not tokens and (usage.get("prompt_tokens") or usage.get("completion_tokens")):
            tokens = (usage.get("prompt_tokens") or 0) + (usage.get("completion_tokens") or 0)
        return ProviderReply(
            content=content,
            model=str(data.get("model") or model),
            finish_reason=str(choice.get("finish_reason") or "stop"),
            tokens_used=tokens if isinstance(tokens, int) and tokens > 0 else estimate_tokens(prompt, content),
        )

    async def send(self, http, api_key, model_tier, prompt, options, config) -> ProviderReply:
        model = self.model_name(model_tier)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.site_url,
            "X-Title": self.site_name,
        }
        data = await _post_json(
            http, f"{self.base_url}/chat/completions", self.build_payload(model, prompt, options, config), headers
        )
        return self.parse_response(data, model, prompt)


def _message_text(message: AIMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks: List[str] = []
        for chunk in content:
            if isinstance(chunk, dict) and chunk.get("type") == "text":
                chunks.append(chunk.get("text", ""))
            elif isinstance(chunk, str):
                chunks.append(chunk)
        return "\n".join(chunks)
    return str(content) if content is not None else ""


class ChatModelProvider(Provider):
    """Adapter for any LangChain chat model (credentials are the model's own).

    Sampling parameters come from the chat model's own configuration; only the
    prompt is sent per call.
    """

    name = "chat_model"
    requires_api_key = False

    def __init__(self, model: BaseChatModel, *, label: Optional[str] = None) -> None:
        self.model = model
        self.label = label

    def model_name(self, model_tier: str) -> str:
        return (
            self.label
            or getattr(self.model, "model_name", None)
            or getattr(self.model, "model", None)
            or self.model._llm_type
        )

    async def send(self, http, api_key, model_tier, prompt, options, config) -> ProviderReply:
        try:
            message = await self.model.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            # Chat model integrations raise their own SDK errors; all are treated as retryable.
            raise TransientTransportError(f"Chat model call failed: {exc}") from exc

        content = _message_text(message)
        if not content.strip():
            raise MalformedResponseError("Chat model returned empty content")

        usage = getattr(message, "usage_metadata", None) or {}
        metadata = getattr(message, "response_metadata", None) or {}
        return ProviderReply(
            content=content,
            model=self.model_name(model_tier),
            finish_reason=str(metadata.get("finish_reason") or "stop"),
            tokens_used=usage.get("total_tokens") or estimate_tokens(prompt, content),
        )
