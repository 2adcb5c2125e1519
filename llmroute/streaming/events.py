"""
Wire events for the chat stream.

Each event is one Server-Sent Events frame:

    event: {type}
    data: {json payload}
    <blank line>

The blank line is the frame delimiter. Payloads are single JSON objects
with camelCase keys:

    metadata  {modelId, modelName, provider, taskType, segmented, segmentCount?}
    segment   {index, total}           index is 1-based
    chunk     {content}
    usage     {promptTokens, completionTokens, totalTokens}
    error     {message}
    done      {}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from llmroute.messages import UsageRecord
from llmroute.routing.router import RoutingDecision

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class EventType(StrEnum):
    METADATA = "metadata"
    SEGMENT = "segment"
    CHUNK = "chunk"
    USAGE = "usage"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    """A single typed event in the output stream."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        json_data = json.dumps(self.data, ensure_ascii=False)
        return f"event: {self.type}\ndata: {json_data}\n\n"


def metadata_event(decision: RoutingDecision) -> StreamEvent:
    model = decision.selected_model
    data: dict[str, Any] = {
        "modelId": model.id,
        "modelName": model.name,
        "provider": model.provider,
        "taskType": decision.task_type.value,
        "segmented": decision.segmented,
    }
    if decision.segmented:
        data["segmentCount"] = decision.segment_count
    return StreamEvent(EventType.METADATA, data)


def segment_event(index: int, total: int) -> StreamEvent:
    return StreamEvent(EventType.SEGMENT, {"index": index, "total": total})


def chunk_event(content: str) -> StreamEvent:
    return StreamEvent(EventType.CHUNK, {"content": content})


def usage_event(usage: UsageRecord) -> StreamEvent:
    return StreamEvent(EventType.USAGE, usage.to_payload())


def error_event(message: str) -> StreamEvent:
    return StreamEvent(EventType.ERROR, {"message": message})


def done_event() -> StreamEvent:
    return StreamEvent(EventType.DONE, {})


def parse_sse(body: str) -> list[StreamEvent]:
    """Parse a complete SSE body back into events (clients and tests)."""
    events: list[StreamEvent] = []
    for frame in body.split("\n\n"):
        if not frame.strip():
            continue
        event_type: str | None = None
        data = "{}"
        for line in frame.split("\n"):
            if line.startswith("event: "):
                event_type = line.removeprefix("event: ")
            elif line.startswith("data: "):
                data = line.removeprefix("data: ")
        if event_type is not None:
            events.append(StreamEvent(EventType(event_type), json.loads(data)))
    return events
