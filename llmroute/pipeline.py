"""Chat pipeline - admission, routing, streaming and usage accounting.

Request flow:
1. Validate the request (messages present, at least one user turn)
2. Quota pre-check against the estimated conversation size
3. Route: pick a model, segment the prompt if it is too large
4. Stream: one producer task runs the orchestrator into a bounded channel
   while the response body drains it
5. Commit usage, then hand the transcript to the sink

Steps 1-3 happen in ``admit`` and fail with an AdmissionError before any
frame exists. Once ``stream`` starts, every failure is reported in-stream.

Usage is committed after the end of stream is signalled, so a consumer
that reads to the end waits for the commit instead of cancelling it. If
the consumer goes away early the producer is cancelled. Only usage of
provider calls that actually completed is committed in that case;
undercounting is preferred to charging for tokens that were never
produced.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from llmroute.accounts.identity import CallerIdentity
from llmroute.accounts.quota import QuotaGuard
from llmroute.config import Settings
from llmroute.errors import (
    AccountingError,
    InvalidRequestError,
    ProviderUnavailableError,
    QuotaExceededError,
)
from llmroute.messages import ChatMessage, latest_user_message
from llmroute.providers.base import ProviderAdapter
from llmroute.providers.registry import ProviderRegistry
from llmroute.routing.router import ModelRouter, RoutingDecision
from llmroute.routing.tokens import estimate_message_tokens
from llmroute.streaming.channel import OutputChannel
from llmroute.streaming.orchestrator import StreamOrchestrator, StreamOutcome, StreamRequest
from llmroute.transcripts import LoggingTranscriptSink, Transcript, TranscriptSink

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChatRequest:
    messages: list[ChatMessage]
    model_id: str | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class PreparedChat:
    """An admitted request, ready to stream."""

    caller: CallerIdentity
    messages: list[ChatMessage]
    decision: RoutingDecision
    adapter: ProviderAdapter
    temperature: float
    estimated_tokens: int


class ChatPipeline:
    def __init__(
        self,
        *,
        settings: Settings,
        router: ModelRouter,
        quota: QuotaGuard,
        registry: ProviderRegistry,
        orchestrator: StreamOrchestrator | None = None,
        transcripts: TranscriptSink | None = None,
    ) -> None:
        self._settings = settings
        self._router = router
        self._quota = quota
        self._registry = registry
        self._orchestrator = orchestrator or StreamOrchestrator(
            segment_timeout_seconds=settings.segment_timeout_seconds
        )
        self._transcripts = transcripts or LoggingTranscriptSink()

    # ------------------------------------------------------------------ #
    # Admission
    # ------------------------------------------------------------------ #

    async def admit(self, caller: CallerIdentity, request: ChatRequest) -> PreparedChat:
        """Validate, check quota and route. Nothing is streamed yet.

        Raises:
            AdmissionError: Any reason the request cannot start
        """
        if not request.messages:
            raise InvalidRequestError("Invalid request. Messages array is required.")

        prompt_message = latest_user_message(request.messages)
        if prompt_message is None:
            raise InvalidRequestError("Invalid request. No user message found.")
        if any(not m.content.strip() for m in request.messages):
            raise InvalidRequestError("Invalid request. Message content must not be empty.")

        estimated_tokens = estimate_message_tokens(request.messages, self._settings.chars_per_token)
        if not await self._quota.admit(caller.caller_id, estimated_tokens):
            raise QuotaExceededError(
                "You have reached your token usage limit. "
                "Please upgrade your plan for more tokens."
            )

        decision = self._router.route(prompt_message.content, caller.tier, request.model_id)

        try:
            adapter = self._registry.adapter_for(decision.selected_model)
        except ProviderUnavailableError as exc:
            raise InvalidRequestError(str(exc)) from exc

        temperature = (
            request.temperature
            if request.temperature is not None
            else self._settings.default_temperature
        )
        return PreparedChat(
            caller=caller,
            messages=list(request.messages),
            decision=decision,
            adapter=adapter,
            temperature=temperature,
            estimated_tokens=estimated_tokens,
        )

    # ------------------------------------------------------------------ #
    # Streaming
    # ------------------------------------------------------------------ #

    async def stream(self, prepared: PreparedChat) -> AsyncIterator[str]:
        """Yield SSE frames for an admitted request."""
        channel = OutputChannel(maxsize=self._settings.stream_buffer_size)
        outcome = StreamOutcome()
        producer = asyncio.create_task(self._produce(prepared, channel, outcome))

        drained = False
        try:
            async for frame in channel:
                yield frame
            drained = True
        finally:
            # The channel closes before usage is committed; only a consumer
            # that stopped early cancels the producer.
            if not drained and not producer.done():
                channel.disconnect()
                if not channel.closed:
                    producer.cancel()
            await asyncio.wait({producer})
            if not producer.cancelled() and producer.exception() is not None:
                log.error(
                    "pipeline.producer_failed",
                    error=str(producer.exception()),
                    exc_info=producer.exception(),
                )

    async def _produce(
        self,
        prepared: PreparedChat,
        channel: OutputChannel,
        outcome: StreamOutcome,
    ) -> None:
        request = StreamRequest(
            decision=prepared.decision,
            messages=prepared.messages,
            adapter=prepared.adapter,
            temperature=prepared.temperature,
        )
        try:
            await self._orchestrator.run(request, channel, outcome)
        except asyncio.CancelledError:
            log.info(
                "pipeline.stream_cancelled",
                caller_id=prepared.caller.caller_id,
                completed_calls=len(outcome.segment_usage),
            )
            raise
        finally:
            await self._settle(prepared, outcome)

    async def _settle(self, prepared: PreparedChat, outcome: StreamOutcome) -> None:
        """Commit usage and record the transcript. Never raises."""
        caller_id = prepared.caller.caller_id
        model = prepared.decision.selected_model
        tokens = outcome.produced_tokens

        if tokens > 0:
            try:
                await self._quota.commit(caller_id, tokens, model.tier)
            except AccountingError as exc:
                log.error("pipeline.commit_failed", caller_id=caller_id, tokens=tokens, error=str(exc))

        if outcome.completed and outcome.usage is not None:
            try:
                await self._transcripts.record(
                    Transcript(
                        caller_id=caller_id,
                        model_id=model.id,
                        messages=prepared.messages,
                        response=outcome.content,
                        usage=outcome.usage,
                    )
                )
            except Exception as exc:
                log.error("pipeline.transcript_failed", caller_id=caller_id, error=str(exc), exc_info=True)
