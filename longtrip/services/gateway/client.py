from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from longtrip.core.config import PLACEHOLDER_API_KEY, ApiSettings, GatewayConfig
from longtrip.core.errors import (
    CredentialError,
    FatalError,
    GatewayResult,
    GatewaySuccess,
    MalformedResponseError,
    TransientError,
    TransientTransportError,
)
from longtrip.core.post_processing import enhance_prompt_for_structured_output, recover_json
from longtrip.services.gateway.providers import (
    GeminiProvider,
    OpenRouterProvider,
    Provider,
    ProviderReply,
)
from longtrip.services.gateway.schemas import GatewayResponse, GenerationOptions

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class AIGatewayClient:
    """Provider-agnostic async client for a generative text backend.

    The client holds immutable configuration and a pooled HTTP client only, so one
    instance can serve several independent trip generations concurrently.
    """

    def __init__(
        self,
        provider: Provider,
        api_key: Optional[str] = None,
        *,
        config: Optional[GatewayConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.api_key = api_key
        self.config = config or GatewayConfig()
        self._sleep = sleep
        self._owns_client = http_client is None
        self._client = http_client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout, connect=self.config.connect_timeout),
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTPX client if this gateway created it."""

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AIGatewayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def has_valid_api_key(self) -> bool:
        if not self.provider.requires_api_key:
            return True
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    async def call(
        self,
        model_tier: str,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GatewayResult:
        """Send ``prompt`` with retries and return a typed result instead of raising.

        Returns ``FatalError`` without touching the network when no usable API key
        is configured, ``TransientError`` when every attempt failed, and
        ``GatewaySuccess`` otherwise.
        """

        if not self.has_valid_api_key():
            logger.warning("No valid %s API key configured", self.provider.name)
            return FatalError(CredentialError(f"No valid API key configured for {self.provider.name}"))

        options = options or GenerationOptions()
        sent_prompt = prompt
        if options.structured and not self.provider.native_json:
            sent_prompt = enhance_prompt_for_structured_output(prompt, options.response_schema)

        max_attempts = self.config.max_attempts
        last_error: Exception = MalformedResponseError("No attempt was made")
        for attempt in range(1, max_attempts + 1):
            try:
                logger.info(
                    "Attempt %s/%s - calling %s", attempt, max_attempts, self.provider.model_name(model_tier)
                )
                reply = await self.provider.send(
                    self._http(), self.api_key, model_tier, sent_prompt, options, self.config
                )
                response = self._normalise(reply, options)
                logger.info("Response received from %s (%s tokens)", response.model, response.tokens_used)
                return GatewaySuccess(response=response, attempts=attempt)
            except (TransientTransportError, MalformedResponseError) as exc:
                last_error = exc
                logger.warning("Attempt %s failed: %s", attempt, exc)
                if attempt == max_attempts:
                    break
                wait_time = 2 ** attempt
                logger.info("Waiting %ss before retry", wait_time)
                await self._sleep(wait_time)

        return TransientError(error=last_error, attempts=max_attempts)

    async def call_or_raise(
        self,
        model_tier: str,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GatewayResponse:
        """Like ``call`` but raises the underlying error for non-success results."""

        result = await self.call(model_tier, prompt, options)
        if isinstance(result, GatewaySuccess):
            return result.response
        raise result.error

    @staticmethod
    def _normalise(reply: ProviderReply, options: GenerationOptions) -> GatewayResponse:
        if not options.structured:
            return GatewayResponse(
                content=reply.content,
                tokens_used=reply.tokens_used or 0,
                model=reply.model,
                finish_reason=reply.finish_reason,
            )
        parsed = recover_json(reply.content, truncated=reply.truncated)
        return GatewayResponse(
            content=parsed,
            tokens_used=reply.tokens_used or 0,
            model=reply.model,
            finish_reason=reply.finish_reason,
            is_structured=True,
            truncated=reply.truncated,
        )

    def health_status(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.name,
            "api_key_configured": self.has_valid_api_key(),
            "native_json": self.provider.native_json,
            "max_attempts": self.config.max_attempts,
            "request_timeout": self.config.request_timeout,
        }


def create_gateway_client(
    settings: ApiSettings,
    *,
    provider: str = "gemini",
    config: Optional[GatewayConfig] = None,
) -> AIGatewayClient:
    """Instantiate the gateway for ``provider`` using project settings.

    A missing key is not an error here: the first ``call`` reports it as a
    ``CredentialError`` without any network attempt.
    """

    if provider == "gemini":
        return AIGatewayClient(GeminiProvider(), settings.gemini_api_key, config=config)
    if provider == "openrouter":
        return AIGatewayClient(
            OpenRouterProvider(
                default_model=settings.openrouter_default_model,
                site_name=settings.openrouter_site_name,
                site_url=settings.openrouter_site_url,
            ),
            settings.openrouter_api_key,
            config=config,
        )
    raise ValueError(f"Unsupported gateway provider '{provider}'")
