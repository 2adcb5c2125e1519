"""Provider registry - maps provider names to adapters."""

from __future__ import annotations

import structlog

from llmroute.config import ProviderMode, Settings
from llmroute.errors import ProviderUnavailableError
from llmroute.providers.base import ProviderAdapter
from llmroute.routing.catalog import ModelSpec

log = structlog.get_logger(__name__)


class ProviderRegistry:
    """Case-insensitive provider name -> adapter lookup."""

    def __init__(self) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, provider: str, adapter: ProviderAdapter) -> None:
        self._adapters[provider.lower()] = adapter
        log.debug("provider_registry.registered", provider=provider.lower())

    def providers(self) -> list[str]:
        return sorted(self._adapters)

    def adapter_for(self, model: ModelSpec) -> ProviderAdapter:
        """Return the adapter serving ``model``.

        Raises:
            ProviderUnavailableError: No adapter for the model's provider
        """
        adapter = self._adapters.get(model.provider.lower())
        if adapter is None:
            raise ProviderUnavailableError(
                f"The selected AI provider ({model.provider}) is not available. "
                f"Configure credentials for {model.provider} or select a different model."
            )
        return adapter


def build_registry(settings: Settings) -> ProviderRegistry:
    """Register one adapter per enabled provider according to provider_mode."""
    registry = ProviderRegistry()

    if settings.provider_mode == ProviderMode.LITELLM:
        from llmroute.providers.litellm_adapter import LiteLLMAdapter

        adapter: ProviderAdapter = LiteLLMAdapter(settings)
    else:
        from llmroute.providers.mock import MockProviderAdapter

        adapter = MockProviderAdapter(delay=0.02, chars_per_token=settings.chars_per_token)

    for provider in settings.enabled_providers:
        registry.register(provider, adapter)

    log.info(
        "provider_registry.built",
        mode=settings.provider_mode.value,
        providers=registry.providers(),
    )
    return registry
