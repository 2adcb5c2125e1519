"""
Shared test fixtures for pytest.

- settings: Test environment configuration (no seeded dev callers)
- catalog, router: Default model catalog and a router over it
- accounts: In-memory account store with one caller per tier
- mock_adapter / registry: Offline provider adapter registered for every provider
- pipeline: ChatPipeline wired from the fixtures above
- app / client: FastAPI app and an async HTTP client against it
- auth_headers: Bearer headers for a given tier
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from llmroute.accounts.identity import InMemoryAccountStore
from llmroute.accounts.quota import QuotaGuard
from llmroute.config import Environment, Settings, get_settings
from llmroute.main import create_app
from llmroute.pipeline import ChatPipeline
from llmroute.providers.mock import MockProviderAdapter
from llmroute.providers.registry import ProviderRegistry
from llmroute.routing.catalog import ModelCatalog, Tier
from llmroute.routing.router import ModelRouter
from llmroute.streaming.orchestrator import StreamOrchestrator
from llmroute.transcripts import Transcript

API_KEYS = {
    Tier.FREE: "test-free-key",
    Tier.PRO: "test-pro-key",
    Tier.ENTERPRISE: "test-enterprise-key",
}

USAGE_LIMIT = 100_000


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingTranscriptSink:
    """Keeps transcripts in memory so tests can inspect them."""

    def __init__(self) -> None:
        self.transcripts: list[Transcript] = []

    async def record(self, transcript: Transcript) -> None:
        self.transcripts.append(transcript)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment=Environment.TEST,
        seed_dev_callers=False,
        segment_timeout_seconds=5.0,
    )


@pytest.fixture
def catalog() -> ModelCatalog:
    return ModelCatalog()


@pytest.fixture
def router(catalog: ModelCatalog, settings: Settings) -> ModelRouter:
    return ModelRouter(catalog, settings)


@pytest.fixture
def accounts() -> InMemoryAccountStore:
    store = InMemoryAccountStore()
    for tier, api_key in API_KEYS.items():
        store.add_caller(f"{tier.value}-caller", tier, api_key=api_key, usage_limit=USAGE_LIMIT)
    return store


@pytest.fixture
def mock_adapter() -> MockProviderAdapter:
    return MockProviderAdapter()


@pytest.fixture
def registry(mock_adapter: MockProviderAdapter) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in ("openai", "anthropic", "google", "mistral"):
        registry.register(provider, mock_adapter)
    return registry


@pytest.fixture
def transcripts() -> RecordingTranscriptSink:
    return RecordingTranscriptSink()


@pytest.fixture
def pipeline(
    settings: Settings,
    router: ModelRouter,
    accounts: InMemoryAccountStore,
    registry: ProviderRegistry,
    transcripts: RecordingTranscriptSink,
) -> ChatPipeline:
    return ChatPipeline(
        settings=settings,
        router=router,
        quota=QuotaGuard(accounts),
        registry=registry,
        orchestrator=StreamOrchestrator(segment_timeout_seconds=settings.segment_timeout_seconds),
        transcripts=transcripts,
    )


@pytest.fixture
def app(
    settings: Settings,
    registry: ProviderRegistry,
    accounts: InMemoryAccountStore,
    transcripts: RecordingTranscriptSink,
) -> FastAPI:
    return create_app(settings, registry=registry, accounts=accounts, transcripts=transcripts)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Build Bearer headers for the test caller on a tier."""

    def _headers(tier: Tier = Tier.FREE) -> dict[str, str]:
        return {"Authorization": f"Bearer {API_KEYS[tier]}"}

    return _headers
