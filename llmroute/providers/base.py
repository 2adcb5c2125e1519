"""Provider adapter contract.

A provider call produces text fragments lazily and, once the fragments are
exhausted, a single trailing UsageRecord. Python async generators cannot
return a value, so adapters yield the fragments followed by exactly one
UsageRecord, and ProviderStream splits that tagged sequence back into an
async iterator of text plus a ``usage`` attribute:

    stream = adapter.stream(messages, model, temperature=0.7)
    async for fragment in stream:
        ...
    usage = stream.usage
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from llmroute.errors import ProviderError
from llmroute.messages import ChatMessage, UsageRecord
from llmroute.routing.catalog import ModelSpec


class ProviderStream:
    """Async iterator of text fragments with a trailing usage record."""

    def __init__(self, source: AsyncIterator[str | UsageRecord]) -> None:
        self._source = source
        self._usage: UsageRecord | None = None
        self._exhausted = False

    def __aiter__(self) -> ProviderStream:
        return self

    async def __anext__(self) -> str:
        if self._exhausted:
            raise StopAsyncIteration

        try:
            item = await self._source.__anext__()
        except StopAsyncIteration:
            self._exhausted = True
            if self._usage is None:
                raise ProviderError("Provider stream ended without a usage record") from None
            raise

        if isinstance(item, UsageRecord):
            self._usage = item
            self._exhausted = True
            await self.aclose()
            raise StopAsyncIteration
        if not isinstance(item, str):
            raise ProviderError(f"Malformed fragment from provider: {type(item).__name__}")
        return item

    @property
    def usage(self) -> UsageRecord:
        """Usage reported at the end of the stream.

        Raises:
            ProviderError: If read before the fragments are exhausted
        """
        if self._usage is None:
            raise ProviderError("Usage is not available until the stream is exhausted")
        return self._usage

    async def aclose(self) -> None:
        """Release the underlying source (cancels an in-flight provider call)."""
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()


class ProviderAdapter(Protocol):
    """Streams completions for one provider's models."""

    def stream(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
        temperature: float,
    ) -> ProviderStream: ...
