"""Streaming orchestrator - the per-request event state machine.

States and transitions:

    START -> EMIT_METADATA -> SINGLE_SHOT   -> EMIT_USAGE -> EMIT_DONE -> CLOSED
                           -> MULTI_SEGMENT -> EMIT_USAGE
    any failure after START            -> ERROR -> EMIT_DONE
    consumer disconnected              -> CLOSED

Each state has one handler that performs its writes and returns the next
state. ``run`` owns the ``finally`` that closes the output channel, so the
channel is closed exactly once whatever happens, and ``done`` is the last
frame written whenever the consumer is still there to receive it.

Fragments are forwarded as ``chunk`` events in arrival order with no
buffering. Writes go straight to the bounded channel, so a slow consumer
holds back consumption of the provider stream.

In multi-segment mode each segment is sent with only the system messages
plus the segment text as the user turn; earlier conversation turns are not
replayed. Segments run strictly in order. Their completion tokens are
summed and reported once, together with the request's fixed prompt
estimate.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from llmroute.errors import ProviderError, ProviderTimeoutError
from llmroute.messages import ChatMessage, Role, UsageRecord, system_messages
from llmroute.providers.base import ProviderAdapter
from llmroute.routing.router import RoutingDecision
from llmroute.streaming.channel import ChannelClosedError, OutputChannel
from llmroute.streaming.events import (
    chunk_event,
    done_event,
    error_event,
    metadata_event,
    segment_event,
    usage_event,
)

log = structlog.get_logger(__name__)


class StreamState(StrEnum):
    START = "start"
    EMIT_METADATA = "emit_metadata"
    SINGLE_SHOT = "single_shot"
    MULTI_SEGMENT = "multi_segment"
    EMIT_USAGE = "emit_usage"
    ERROR = "error"
    EMIT_DONE = "emit_done"
    CLOSED = "closed"


@dataclass(frozen=True)
class StreamRequest:
    """Everything the orchestrator needs for one request."""

    decision: RoutingDecision
    messages: list[ChatMessage]
    adapter: ProviderAdapter
    temperature: float = 0.7


@dataclass
class StreamOutcome:
    """Mutable record of what a run produced.

    Owned by the caller and filled in as the run progresses, so it stays
    readable even when the run is cancelled part way through.

    Attributes:
        content_parts: Fragments forwarded to the consumer, in order
        segment_usage: Usage of each provider call that completed
        usage: Final usage reported to the consumer (None unless completed)
        error: Message of the error event, if one was written or attempted
        states: Visited states, in order
    """

    content_parts: list[str] = field(default_factory=list)
    segment_usage: list[UsageRecord] = field(default_factory=list)
    usage: UsageRecord | None = None
    error: str | None = None
    states: list[StreamState] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "".join(self.content_parts)

    @property
    def completed(self) -> bool:
        return self.usage is not None and self.error is None

    @property
    def produced_tokens(self) -> int:
        """Tokens to bill: final usage on success, completed calls otherwise."""
        if self.completed and self.usage is not None:
            return self.usage.total_tokens
        return sum(u.total_tokens for u in self.segment_usage)


class StreamOrchestrator:
    """Drives the provider adapter and frames its output onto a channel."""

    def __init__(self, *, segment_timeout_seconds: float = 120.0) -> None:
        self._segment_timeout = segment_timeout_seconds

    async def run(
        self,
        request: StreamRequest,
        channel: OutputChannel,
        outcome: StreamOutcome | None = None,
    ) -> StreamOutcome:
        """Run the state machine to completion.

        Never raises for provider or write failures; those become an
        ``error`` event. Cancellation propagates after the channel is closed.
        """
        outcome = outcome if outcome is not None else StreamOutcome()
        run = _Run(request, channel, outcome, self._segment_timeout)

        state = StreamState.START
        try:
            while state != StreamState.CLOSED:
                outcome.states.append(state)
                state = await run.step(state)
            outcome.states.append(state)
        finally:
            await channel.close()

        return outcome


class _Run:
    """State handlers for one orchestrator run."""

    def __init__(
        self,
        request: StreamRequest,
        channel: OutputChannel,
        outcome: StreamOutcome,
        segment_timeout: float,
    ) -> None:
        self.request = request
        self.decision = request.decision
        self.channel = channel
        self.outcome = outcome
        self.segment_timeout = segment_timeout
        self._handlers = {
            StreamState.START: self._start,
            StreamState.EMIT_METADATA: self._emit_metadata,
            StreamState.SINGLE_SHOT: self._single_shot,
            StreamState.MULTI_SEGMENT: self._multi_segment,
            StreamState.EMIT_USAGE: self._emit_usage,
            StreamState.ERROR: self._error,
            StreamState.EMIT_DONE: self._emit_done,
        }

    async def step(self, state: StreamState) -> StreamState:
        handler = self._handlers[state]
        if state in (StreamState.START, StreamState.ERROR, StreamState.EMIT_DONE):
            return await handler()

        try:
            return await handler()
        except ChannelClosedError:
            log.info("orchestrator.consumer_gone", state=state.value)
            return StreamState.CLOSED
        except ProviderError as exc:
            self.outcome.error = str(exc)
            log.warning("orchestrator.provider_error", state=state.value, error=str(exc))
            return StreamState.ERROR
        except Exception as exc:
            self.outcome.error = "Unexpected error while streaming the response"
            log.error("orchestrator.unexpected_error", state=state.value, error=str(exc), exc_info=True)
            return StreamState.ERROR

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    async def _start(self) -> StreamState:
        log.info(
            "orchestrator.started",
            model_id=self.decision.selected_model.id,
            segmented=self.decision.segmented,
            segment_count=self.decision.segment_count,
        )
        return StreamState.EMIT_METADATA

    async def _emit_metadata(self) -> StreamState:
        await self.channel.write(metadata_event(self.decision))
        if self.decision.segmented:
            return StreamState.MULTI_SEGMENT
        return StreamState.SINGLE_SHOT

    async def _single_shot(self) -> StreamState:
        usage = await self._stream_call(self.request.messages)
        self.outcome.usage = usage
        return StreamState.EMIT_USAGE

    async def _multi_segment(self) -> StreamState:
        segments = self.decision.segmented_prompts or ()
        total = len(segments)
        base = system_messages(self.request.messages)
        completion_tokens = 0

        for index, text in enumerate(segments, start=1):
            await self.channel.write(segment_event(index, total))
            log.debug("orchestrator.segment_started", index=index, total=total, chars=len(text))

            usage = await self._stream_call([*base, ChatMessage(role=Role.USER, content=text)])
            completion_tokens += usage.completion_tokens

        prompt_tokens = self.decision.prompt_tokens
        self.outcome.usage = UsageRecord(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
        return StreamState.EMIT_USAGE

    async def _emit_usage(self) -> StreamState:
        if self.outcome.usage is None:
            raise ProviderError("Provider finished without reporting usage")
        await self.channel.write(usage_event(self.outcome.usage))
        return StreamState.EMIT_DONE

    async def _error(self) -> StreamState:
        try:
            await self.channel.write(error_event(self.outcome.error or "Unknown error"))
        except ChannelClosedError:
            return StreamState.CLOSED
        return StreamState.EMIT_DONE

    async def _emit_done(self) -> StreamState:
        try:
            await self.channel.write(done_event())
        except ChannelClosedError:
            return StreamState.CLOSED
        log.info(
            "orchestrator.completed",
            model_id=self.decision.selected_model.id,
            fragment_count=len(self.outcome.content_parts),
            error=self.outcome.error,
        )
        return StreamState.CLOSED

    # ------------------------------------------------------------------ #
    # Provider call
    # ------------------------------------------------------------------ #

    async def _stream_call(self, messages: list[ChatMessage]) -> UsageRecord:
        """Forward one provider call's fragments and return its usage."""
        model = self.decision.selected_model
        stream = self.request.adapter.stream(messages, model, self.request.temperature)
        loop = asyncio.get_running_loop()
        # Only time spent waiting on the provider counts against the budget;
        # time blocked on a slow consumer does not.
        waited = 0.0
        try:
            while True:
                started = loop.time()
                try:
                    fragment = await asyncio.wait_for(
                        anext(stream), timeout=max(self.segment_timeout - waited, 0)
                    )
                except StopAsyncIteration:
                    break
                except TimeoutError as exc:
                    raise ProviderTimeoutError(
                        f"{model.name} did not finish within {self.segment_timeout:g} seconds"
                    ) from exc
                waited += loop.time() - started

                await self.channel.write(chunk_event(fragment))
                self.outcome.content_parts.append(fragment)
        finally:
            await stream.aclose()

        usage = stream.usage
        self.outcome.segment_usage.append(usage)
        return usage
