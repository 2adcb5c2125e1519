"""Provider adapters: the capability to stream model output for a provider/model pair."""

from __future__ import annotations

from llmroute.providers.base import ProviderAdapter, ProviderStream
from llmroute.providers.mock import MockProviderAdapter
from llmroute.providers.registry import ProviderRegistry, build_registry

__all__ = [
    "MockProviderAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "ProviderStream",
    "build_registry",
]
