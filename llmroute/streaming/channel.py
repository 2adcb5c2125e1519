"""Bounded output channel between the orchestrator and the HTTP response.

The orchestrator writes framed events; the response body iterates the
channel. The queue is bounded, so a slow consumer makes ``write`` block,
which in turn stops the orchestrator pulling more fragments from the
provider. The adapter can never run more than ``maxsize`` frames ahead of
the client.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import structlog

from llmroute.streaming.events import StreamEvent

log = structlog.get_logger(__name__)

_END = object()


class ChannelClosedError(Exception):
    """Write attempted after close or after the consumer disconnected."""


class OutputChannel:
    """Single-producer, single-consumer frame channel with close-once semantics."""

    def __init__(self, maxsize: int = 16) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._disconnected = False
        self.frames_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    async def write(self, event: StreamEvent) -> None:
        """Enqueue one framed event, waiting while the buffer is full.

        Raises:
            ChannelClosedError: Channel closed or consumer gone
        """
        if self._closed or self._disconnected:
            raise ChannelClosedError(f"cannot write {event.type} event: channel closed")
        await self._queue.put(event.to_sse())
        self.frames_written += 1

    async def close(self) -> None:
        """Signal end of stream. Only the first call has any effect."""
        if self._closed:
            return
        self._closed = True
        if not self._disconnected:
            await self._queue.put(_END)
        log.debug("channel.closed", frames_written=self.frames_written)

    def disconnect(self) -> None:
        """Mark the consumer as gone; pending and future writes are dropped."""
        if self._disconnected:
            return
        self._disconnected = True
        # Drain so a writer blocked on a full queue wakes up
        while not self._queue.empty():
            self._queue.get_nowait()
        log.info("channel.consumer_disconnected", frames_written=self.frames_written)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item  # type: ignore[misc]
