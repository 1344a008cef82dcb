"""External service integrations for long-trip generation.

- gateway: provider-agnostic access to the generative text backend
- poi: rule-based point-of-interest extraction and its LangChain tool

Example Usage:
    >>> from longtrip.services.gateway import create_gateway_client
    >>> from longtrip.core.config import ApiSettings
    >>>
    >>> settings = ApiSettings.from_env()
    >>> gateway = create_gateway_client(settings, provider="gemini")
"""
