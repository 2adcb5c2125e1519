"""Conversation messages and usage records shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class ChatMessage:
    """One immutable turn of the conversation passed to a provider."""

    role: Role
    content: str
    model_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_provider(self) -> dict[str, str]:
        """OpenAI-style role/content dict."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class UsageRecord:
    """Token counts reported by a provider for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


def latest_user_message(messages: list[ChatMessage]) -> ChatMessage | None:
    """Return the last user-role message, or None."""
    for message in reversed(messages):
        if message.role == Role.USER:
            return message
    return None


def system_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    return [m for m in messages if m.role == Role.SYSTEM]
