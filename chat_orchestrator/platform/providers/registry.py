"""Provider variant registry.

Resolves a provider id to a constructed ProviderAdapter, reading the
provider's credential from settings at construction time.
"""

import logging
from dataclasses import dataclass

from chat_orchestrator.platform.agent.errors import ConfigurationError, MissingCredential, UnknownProvider
from chat_orchestrator.platform.providers.litellm_provider import (
    AnthropicCompatibleProvider,
    DeepSeekProvider,
    LiteLLMProvider,
    OllamaProvider,
    OpenAICompatibleProvider,
    OpenRouterProvider,
)
from chat_orchestrator.platform.providers.mock import MockProvider
from chat_orchestrator.platform.providers.protocol import ProviderAdapter
from chat_orchestrator.platform.settings import ProvidersSettings

logger = logging.getLogger(__name__)

_LITELLM_PROVIDERS: dict[str, type[LiteLLMProvider]] = {
    provider_cls.provider_id: provider_cls
    for provider_cls in (
        OpenAICompatibleProvider,
        AnthropicCompatibleProvider,
        DeepSeekProvider,
        OpenRouterProvider,
        OllamaProvider,
    )
}
MOCK_PROVIDER_ID = MockProvider.provider_id


@dataclass(frozen=True)
class ProviderInfo:
    provider_id: str
    configured: bool


def parse_model(model: str) -> tuple[str, str]:
    """Split a "provider/model" identifier.

    Only the first "/" separates the provider, so model ids such as
    "openai/meta-llama/Llama-3-70b" keep their own slashes.

    Raises:
        ConfigurationError: If either part is missing
    """
    provider_id, sep, model_id = model.partition("/")
    if not sep or not provider_id or not model_id:
        raise ConfigurationError(f"Model must be given as 'provider/model', got '{model}'")
    return provider_id, model_id


class ProviderRegistry:
    """Closed set of provider variants keyed by provider id."""

    def __init__(self, settings: ProvidersSettings) -> None:
        self._settings = settings

    def known(self) -> list[str]:
        return sorted([*_LITELLM_PROVIDERS, MOCK_PROVIDER_ID])

    def list_providers(self) -> list[ProviderInfo]:
        """List every provider variant with its credential status."""
        infos = []
        for provider_id in self.known():
            if provider_id == MOCK_PROVIDER_ID:
                infos.append(ProviderInfo(provider_id, configured=True))
            else:
                credentials = getattr(self._settings, provider_id)
                configured = credentials.has_credential or not _LITELLM_PROVIDERS[provider_id].requires_api_key
                infos.append(ProviderInfo(provider_id, configured=configured))
        return infos

    async def create(self, provider_id: str) -> ProviderAdapter:
        """Construct the provider registered under provider_id.

        Raises:
            UnknownProvider: If no variant has this id
            MissingCredential: If the provider's API key is not configured
        """
        if provider_id == MOCK_PROVIDER_ID:
            return MockProvider()
        provider_cls = _LITELLM_PROVIDERS.get(provider_id)
        if provider_cls is None:
            raise UnknownProvider(provider_id)
        credentials = getattr(self._settings, provider_id)
        if provider_cls.requires_api_key and not credentials.has_credential:
            raise MissingCredential(provider_id)
        logger.info("Creating provider '%s' (api_base=%s)", provider_id, credentials.api_base)
        return provider_cls(
            api_key=credentials.api_key.get_secret_value() if credentials.api_key else None,
            api_base=credentials.api_base,
        )
