"""AI gateway: provider-agnostic access to the generative text backend.

Public API:
    - AIGatewayClient: async client with retry/backoff and structured-output recovery
    - create_gateway_client: factory using ``ApiSettings``
    - GeminiProvider / OpenRouterProvider / ChatModelProvider: wire adapters
    - GenerationOptions / GatewayResponse: request and response schemas
"""
from longtrip.services.gateway.client import AIGatewayClient, create_gateway_client
from longtrip.services.gateway.providers import (
    ChatModelProvider,
    GeminiProvider,
    OpenRouterProvider,
    Provider,
)
from longtrip.services.gateway.schemas import GatewayResponse, GenerationOptions

__all__ = [
    "AIGatewayClient",
    "create_gateway_client",
    "ChatModelProvider",
    "GeminiProvider",
    "OpenRouterProvider",
    "Provider",
    "GatewayResponse",
    "GenerationOptions",
]
