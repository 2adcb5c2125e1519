"""Transcript hand-off to the surrounding application.

Chat history persistence is not part of this service. After a stream
completes successfully the pipeline passes the assembled transcript to a
TranscriptSink; whatever stores it lives behind that interface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from llmroute.messages import ChatMessage, UsageRecord

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Transcript:
    caller_id: str
    model_id: str
    messages: list[ChatMessage]
    response: str
    usage: UsageRecord


class TranscriptSink(Protocol):
    async def record(self, transcript: Transcript) -> None: ...


class LoggingTranscriptSink:
    """Default sink: records that a transcript was produced, stores nothing."""

    async def record(self, transcript: Transcript) -> None:
        log.info(
            "transcript.completed",
            caller_id=transcript.caller_id,
            model_id=transcript.model_id,
            message_count=len(transcript.messages),
            response_chars=len(transcript.response),
            total_tokens=transcript.usage.total_tokens,
        )
