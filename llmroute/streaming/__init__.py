"""Event framing, the bounded output channel and the streaming state machine."""

from __future__ import annotations

from llmroute.streaming.channel import ChannelClosedError, OutputChannel
from llmroute.streaming.events import EventType, StreamEvent, parse_sse
from llmroute.streaming.orchestrator import (
    StreamOrchestrator,
    StreamOutcome,
    StreamRequest,
    StreamState,
)

__all__ = [
    "ChannelClosedError",
    "EventType",
    "OutputChannel",
    "StreamEvent",
    "StreamOrchestrator",
    "StreamOutcome",
    "StreamRequest",
    "StreamState",
    "parse_sse",
]
