"""Mock provider adapter - deterministic offline streaming.

Use in development when no provider keys are configured
(``PROVIDER_MODE=mock``) and in tests. The mock never calls any real model;
it picks a canned response by keyword from the last user message and
streams it word by word, so runs are reproducible. Usage is estimated from
characters the same way the real adapter does when a provider reports
nothing.

Failure injection:
    MockProviderAdapter(fail_after=3)  -> raises ProviderError after 3 fragments
    MockProviderAdapter(delay=0.05)    -> sleeps between fragments
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator

import structlog

from llmroute.errors import ProviderError
from llmroute.messages import ChatMessage, UsageRecord, latest_user_message
from llmroute.providers.base import ProviderStream
from llmroute.routing.catalog import ModelSpec
from llmroute.routing.tokens import estimate_message_tokens, estimate_tokens

log = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Canned responses keyed by simple keyword matching
# ---------------------------------------------------------------------------
_CANNED_RESPONSES: list[tuple[list[str], str]] = [
    (
        ["hello", "hi", "hey", "greet"],
        "Hello! I'm the mock provider running in offline mode. How can I help you today?",
    ),
    (
        ["poem", "river"],
        (
            "Silver threads through valley stone,\n"
            "the river hums in undertone,\n"
            "it carries rain from hills afar\n"
            "and keeps the shape of every star."
        ),
    ),
    (
        ["code", "function", "python"],
        "def add(a, b):\n    return a + b\n",
    ),
    (
        ["math", "calculate", "solve", "equation"],
        "Solving step by step: isolate the variable, then divide both sides. x = 4.",
    ),
    (
        ["summarize", "summary", "tldr"],
        "Summary: the text describes a routing service that streams model output.",
    ),
]

_DEFAULT_RESPONSE = (
    "I'm the mock provider running in offline development mode. "
    "I return canned responses so that streaming can be exercised without keys."
)

_WORD_PATTERN = re.compile(r"\S+\s*|\s+")


def pick_response(messages: list[ChatMessage]) -> str:
    """Select a canned response based on the last user message content."""
    last_user = latest_user_message(messages)
    content = last_user.content.lower() if last_user else ""
    for keywords, response in _CANNED_RESPONSES:
        if any(kw in content for kw in keywords):
            return response
    return _DEFAULT_RESPONSE


def split_fragments(text: str) -> list[str]:
    """Split text into word-sized fragments that join back to ``text``."""
    return _WORD_PATTERN.findall(text)


class MockProviderAdapter:
    """Streams canned text as if it came from a provider.

    Args:
        response: Fixed response text. If None, chosen by keyword.
        delay: Seconds to sleep before each fragment
        fail_after: Raise ProviderError after this many fragments
        chars_per_token: Estimator ratio for the usage record
    """

    def __init__(
        self,
        *,
        response: str | None = None,
        delay: float = 0.0,
        fail_after: int | None = None,
        chars_per_token: int = 4,
    ) -> None:
        self._response = response
        self._delay = delay
        self._fail_after = fail_after
        self._chars_per_token = chars_per_token
        self.calls: list[list[ChatMessage]] = []

    def stream(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
        temperature: float,
    ) -> ProviderStream:
        self.calls.append(list(messages))
        return ProviderStream(self._generate(messages, model))

    async def _generate(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
    ) -> AsyncIterator[str | UsageRecord]:
        text = self._response if self._response is not None else pick_response(messages)

        for sent, fragment in enumerate(split_fragments(text)):
            if self._fail_after is not None and sent >= self._fail_after:
                raise ProviderError(f"Mock provider failure for {model.id}")
            if self._delay:
                await asyncio.sleep(self._delay)
            yield fragment

        prompt_tokens = estimate_message_tokens(messages, self._chars_per_token)
        completion_tokens = estimate_tokens(text, self._chars_per_token)
        log.debug("mock_provider.stream_done", model_id=model.id, completion_tokens=completion_tokens)
        yield UsageRecord(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
