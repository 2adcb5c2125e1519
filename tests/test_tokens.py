"""Tests for token estimation helpers."""

from __future__ import annotations

from llmroute.messages import ChatMessage, Role
from llmroute.routing.catalog import Tier
from llmroute.routing.tokens import (
    estimate_cost,
    estimate_message_tokens,
    estimate_tokens,
    format_token_count,
    usage_percentage,
)


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("abcdef", chars_per_token=3) == 2


def test_estimate_message_tokens_sums_contents() -> None:
    messages = [
        ChatMessage(role=Role.SYSTEM, content="abc"),
        ChatMessage(role=Role.USER, content="defgh"),
    ]
    assert estimate_message_tokens(messages) == 2
    assert estimate_message_tokens([]) == 0


def test_estimate_cost_by_tier() -> None:
    assert estimate_cost(1000, Tier.FREE) == 0.001
    assert estimate_cost(2000, Tier.ENTERPRISE) == 0.02


def test_format_token_count() -> None:
    assert format_token_count(999) == "999"
    assert format_token_count(1500) == "1.5K"
    assert format_token_count(2_500_000) == "2.5M"


def test_usage_percentage() -> None:
    assert usage_percentage(50, 200) == 25.0
    assert usage_percentage(10, 0) == 0.0
