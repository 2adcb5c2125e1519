"""Chat endpoint - POST /chat

Admission (authentication, validation, quota pre-check, routing) runs
before the response starts, so every rejection is a plain JSON error with
an HTTP status and no stream frames. Once admitted, the response is an SSE
stream and all later failures arrive as ``error`` events followed by
``done``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from llmroute.accounts.identity import CallerIdentity
from llmroute.api.dependencies import get_current_caller, get_pipeline
from llmroute.messages import ChatMessage, Role
from llmroute.pipeline import ChatPipeline, ChatRequest
from llmroute.streaming.events import SSE_HEADERS, SSE_MEDIA_TYPE

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatMessageBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    role: Role
    content: str = Field(..., max_length=2_000_000)
    model_id: str | None = Field(default=None, alias="modelId")


class ChatRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    messages: list[ChatMessageBody] = Field(
        ...,
        description="Conversation so far. The latest user message is the prompt.",
    )
    model_id: str | None = Field(
        default=None,
        alias="modelId",
        description="Preferred model. Omit to let the router choose.",
    )
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    def to_request(self) -> ChatRequest:
        return ChatRequest(
            messages=[
                ChatMessage(role=m.role, content=m.content, model_id=m.model_id)
                for m in self.messages
            ],
            model_id=self.model_id,
            temperature=self.temperature,
        )


@router.post(
    "",
    summary="Stream a chat completion",
    response_class=StreamingResponse,
    responses={200: {"content": {SSE_MEDIA_TYPE: {}}}},
)
async def chat(
    body: ChatRequestBody,
    caller: CallerIdentity = Depends(get_current_caller),
    pipeline: ChatPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    prepared = await pipeline.admit(caller, body.to_request())

    log.info(
        "chat.stream_started",
        model_id=prepared.decision.selected_model.id,
        task_type=prepared.decision.task_type.value,
        segments=prepared.decision.segment_count,
    )
    return StreamingResponse(
        pipeline.stream(prepared),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
