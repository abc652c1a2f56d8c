"""LLM provider adapters."""

from chat_orchestrator.platform.providers.litellm_provider import (
    AnthropicCompatibleProvider,
    LiteLLMProvider,
    OpenAICompatibleProvider,
)
from chat_orchestrator.platform.providers.mock import MockProvider
from chat_orchestrator.platform.providers.protocol import ProviderAdapter, ProviderFragment
from chat_orchestrator.platform.providers.registry import ProviderRegistry, parse_model

__all__ = [
    "AnthropicCompatibleProvider",
    "LiteLLMProvider",
    "MockProvider",
    "OpenAICompatibleProvider",
    "ProviderAdapter",
    "ProviderFragment",
    "ProviderRegistry",
    "parse_model",
]
