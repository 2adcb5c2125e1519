"""Tests for the chat pipeline: admission, accounting and transcripts."""

from __future__ import annotations

import asyncio

import pytest

from llmroute.accounts.identity import CallerIdentity, InMemoryAccountStore
from llmroute.accounts.quota import QuotaGuard
from llmroute.config import Settings
from llmroute.errors import (
    AccountingError,
    InvalidRequestError,
    ModelNotFoundError,
    QuotaExceededError,
    TierForbiddenError,
)
from llmroute.messages import ChatMessage, Role
from llmroute.pipeline import ChatPipeline, ChatRequest
from llmroute.providers.mock import MockProviderAdapter
from llmroute.providers.registry import ProviderRegistry
from llmroute.routing.catalog import ModelCatalog, ModelSpec, Tier
from llmroute.routing.classifier import TaskType
from llmroute.routing.router import ModelRouter
from llmroute.streaming.events import EventType, parse_sse
from llmroute.transcripts import Transcript

POEM = ChatRequest(messages=[ChatMessage(role=Role.USER, content="Write a poem about rivers")])


async def caller_for(accounts: InMemoryAccountStore, tier: Tier = Tier.FREE) -> CallerIdentity:
    caller = await accounts.lookup(f"test-{tier.value}-key")
    assert caller is not None
    return caller


async def collect(pipeline: ChatPipeline, caller: CallerIdentity, request: ChatRequest = POEM):
    prepared = await pipeline.admit(caller, request)
    frames = [frame async for frame in pipeline.stream(prepared)]
    return prepared, parse_sse("".join(frames))


def build_pipeline(
    settings: Settings,
    accounts: InMemoryAccountStore,
    adapter,
    *,
    catalog: ModelCatalog | None = None,
    transcripts=None,
) -> ChatPipeline:
    registry = ProviderRegistry()
    for provider in ("openai", "anthropic", "google", "mistral"):
        registry.register(provider, adapter)
    return ChatPipeline(
        settings=settings,
        router=ModelRouter(catalog or ModelCatalog(), settings),
        quota=QuotaGuard(accounts),
        registry=registry,
        transcripts=transcripts,
    )


# ------------------------------------------------------------------ #
# Admission
# ------------------------------------------------------------------ #

async def test_admit_rejects_empty_messages(pipeline, accounts) -> None:
    with pytest.raises(InvalidRequestError, match="Messages array is required"):
        await pipeline.admit(await caller_for(accounts), ChatRequest(messages=[]))


async def test_admit_requires_user_message(pipeline, accounts) -> None:
    request = ChatRequest(messages=[ChatMessage(role=Role.ASSISTANT, content="Hello!")])
    with pytest.raises(InvalidRequestError, match="No user message"):
        await pipeline.admit(await caller_for(accounts), request)


async def test_admit_rejects_blank_prompt(pipeline, accounts) -> None:
    request = ChatRequest(messages=[ChatMessage(role=Role.USER, content="   ")])
    with pytest.raises(InvalidRequestError):
        await pipeline.admit(await caller_for(accounts), request)


async def test_admit_rejects_exhausted_quota(settings, accounts, mock_adapter) -> None:
    accounts.add_caller("capped", Tier.PRO, api_key="capped-key", usage_total=99_999, usage_limit=100_000)
    pipeline = build_pipeline(settings, accounts, mock_adapter)
    caller = await accounts.lookup("capped-key")

    with pytest.raises(QuotaExceededError, match="usage limit"):
        await pipeline.admit(caller, POEM)
    assert mock_adapter.calls == []


async def test_admit_rejects_model_above_tier(pipeline, accounts, mock_adapter) -> None:
    request = ChatRequest(messages=POEM.messages, model_id="claude-3-opus")

    with pytest.raises(TierForbiddenError):
        await pipeline.admit(await caller_for(accounts), request)
    assert mock_adapter.calls == []
    assert (await accounts.get("free-caller")).usage_total == 0


async def test_admit_rejects_unknown_model(pipeline, accounts) -> None:
    request = ChatRequest(messages=POEM.messages, model_id="gpt-9")
    with pytest.raises(ModelNotFoundError):
        await pipeline.admit(await caller_for(accounts, Tier.ENTERPRISE), request)


async def test_admit_rejects_provider_without_adapter(settings, accounts, mock_adapter) -> None:
    registry = ProviderRegistry()
    registry.register("openai", mock_adapter)
    pipeline = ChatPipeline(
        settings=settings,
        router=ModelRouter(ModelCatalog(), settings),
        quota=QuotaGuard(accounts),
        registry=registry,
    )
    # Routes to claude-3-haiku, whose provider has no adapter
    with pytest.raises(InvalidRequestError, match="anthropic"):
        await pipeline.admit(await caller_for(accounts), POEM)


async def test_admit_uses_default_temperature(pipeline, accounts, settings) -> None:
    prepared = await pipeline.admit(await caller_for(accounts), POEM)
    assert prepared.temperature == settings.default_temperature
    assert prepared.decision.selected_model.id == "claude-3-haiku"


# ------------------------------------------------------------------ #
# Streaming & accounting
# ------------------------------------------------------------------ #

async def test_successful_stream_commits_reported_usage(pipeline, accounts, transcripts) -> None:
    _, events = await collect(pipeline, await caller_for(accounts))

    assert events[0].type == EventType.METADATA
    assert events[0].data["modelId"] == "claude-3-haiku"
    assert events[-1].type == EventType.DONE
    usage = next(e.data for e in events if e.type == EventType.USAGE)

    quota = await accounts.get("free-caller")
    assert quota.usage_total == usage["totalTokens"]

    assert len(transcripts.transcripts) == 1
    transcript = transcripts.transcripts[0]
    assert transcript.caller_id == "free-caller"
    assert transcript.model_id == "claude-3-haiku"
    assert transcript.response.startswith("Silver threads")
    assert transcript.usage.total_tokens == usage["totalTokens"]


async def test_failed_stream_commits_nothing(settings, accounts, transcripts) -> None:
    adapter = MockProviderAdapter(response="a b c d", fail_after=2)
    pipeline = build_pipeline(settings, accounts, adapter, transcripts=transcripts)

    _, events = await collect(pipeline, await caller_for(accounts))

    assert [e.type for e in events][-2:] == [EventType.ERROR, EventType.DONE]
    assert (await accounts.get("free-caller")).usage_total == 0
    assert transcripts.transcripts == []


async def test_partial_multi_segment_commits_completed_segments(settings, accounts, transcripts) -> None:
    tiny = ModelSpec(
        id="tiny",
        name="Tiny",
        provider="openai",
        tier=Tier.FREE,
        max_tokens=20,
        capabilities=frozenset(TaskType),
    )

    class FailSecondCall:
        def __init__(self) -> None:
            self.ok = MockProviderAdapter(response="fine")
            self.bad = MockProviderAdapter(response="fine", fail_after=0)
            self.count = 0

        def stream(self, messages, model, temperature):
            self.count += 1
            return (self.ok if self.count == 1 else self.bad).stream(messages, model, temperature)

    adapter = FailSecondCall()
    pipeline = build_pipeline(
        settings, accounts, adapter, catalog=ModelCatalog(models=[tiny]), transcripts=transcripts
    )
    request = ChatRequest(messages=[ChatMessage(role=Role.USER, content="word " * 40)])

    prepared, events = await collect(pipeline, await caller_for(accounts), request)

    assert prepared.decision.segmented is True
    assert EventType.ERROR in [e.type for e in events]
    # Only the first call completed: its prompt (15 tokens) plus "fine" (1 token)
    assert (await accounts.get("free-caller")).usage_total == 16
    assert transcripts.transcripts == []


async def test_consumer_disconnect_cancels_producer(settings, accounts, transcripts) -> None:
    adapter = MockProviderAdapter(response="word " * 100, delay=0.01)
    pipeline = build_pipeline(settings, accounts, adapter, transcripts=transcripts)
    prepared = await pipeline.admit(await caller_for(accounts), POEM)

    stream = pipeline.stream(prepared)
    first = await stream.__anext__()
    await stream.aclose()

    assert parse_sse(first)[0].type == EventType.METADATA
    # No provider call completed, so nothing is billed
    assert (await accounts.get("free-caller")).usage_total == 0
    assert transcripts.transcripts == []


async def test_commit_failure_does_not_break_stream(settings, accounts, transcripts) -> None:
    class BrokenCommitStore(InMemoryAccountStore):
        async def add_usage(self, caller_id: str, tokens: int):
            raise AccountingError("ledger offline")

    store = BrokenCommitStore()
    store.add_caller("free-caller", Tier.FREE, api_key="test-free-key")
    pipeline = build_pipeline(settings, store, MockProviderAdapter(), transcripts=transcripts)

    _, events = await collect(pipeline, await caller_for(store))

    assert events[-1].type == EventType.DONE
    assert EventType.ERROR not in [e.type for e in events]
    assert len(transcripts.transcripts) == 1


class SlowLedgerStore(InMemoryAccountStore):
    """Account store whose writes yield to the event loop, like a real database."""

    async def add_usage(self, caller_id: str, tokens: int):
        await asyncio.sleep(0.01)
        return await super().add_usage(caller_id, tokens)


class SlowTranscriptSink:
    def __init__(self) -> None:
        self.transcripts: list[Transcript] = []

    async def record(self, transcript: Transcript) -> None:
        await asyncio.sleep(0.01)
        self.transcripts.append(transcript)


@pytest.fixture
def slow_accounts() -> SlowLedgerStore:
    store = SlowLedgerStore()
    store.add_caller("free-caller", Tier.FREE, api_key="test-free-key")
    return store


async def test_drained_stream_waits_for_awaiting_commit(settings, slow_accounts) -> None:
    sink = SlowTranscriptSink()
    pipeline = build_pipeline(settings, slow_accounts, MockProviderAdapter(), transcripts=sink)

    _, events = await collect(pipeline, await caller_for(slow_accounts))

    assert events[-1].type == EventType.DONE
    usage = next(e.data for e in events if e.type == EventType.USAGE)
    # Settlement finished before the stream generator returned
    assert (await slow_accounts.get("free-caller")).usage_total == usage["totalTokens"]
    assert len(sink.transcripts) == 1
    assert sink.transcripts[0].usage.total_tokens == usage["totalTokens"]


async def test_drained_multi_segment_stream_commits_every_call(settings, slow_accounts) -> None:
    tiny = ModelSpec(
        id="tiny",
        name="Tiny",
        provider="openai",
        tier=Tier.FREE,
        max_tokens=20,
        capabilities=frozenset(TaskType),
    )
    pipeline = build_pipeline(
        settings,
        slow_accounts,
        MockProviderAdapter(response="fine"),
        catalog=ModelCatalog(models=[tiny]),
    )
    request = ChatRequest(messages=[ChatMessage(role=Role.USER, content="word " * 40)])

    prepared, events = await collect(pipeline, await caller_for(slow_accounts), request)

    assert prepared.decision.segmented is True
    assert EventType.ERROR not in [e.type for e in events]
    usage = next(e.data for e in events if e.type == EventType.USAGE)
    assert (await slow_accounts.get("free-caller")).usage_total == usage["totalTokens"]
