"""Character-based token estimation and usage formatting helpers.

The estimator is deliberately provider-agnostic: one token is approximated
as ``chars_per_token`` characters (4 by default), rounded up. It drives
admission, the router's segmentation decision, and the fallback usage
record for providers that do not report counts while streaming.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from llmroute.messages import ChatMessage
from llmroute.routing.catalog import Tier

DEFAULT_CHARS_PER_TOKEN = 4

# USD per 1K tokens by model tier
_COST_PER_1K: dict[Tier, float] = {
    Tier.FREE: 0.001,
    Tier.PRO: 0.003,
    Tier.ENTERPRISE: 0.01,
}


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Approximate token count for ``text``."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def estimate_message_tokens(
    messages: Iterable[ChatMessage],
    chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
) -> int:
    """Approximate token count for a whole conversation."""
    total_chars = sum(len(m.content) for m in messages)
    if total_chars == 0:
        return 0
    return math.ceil(total_chars / chars_per_token)


def estimate_cost(tokens: int, tier: Tier) -> float:
    """Estimated USD cost of ``tokens`` on a model of the given tier."""
    return (tokens / 1000) * _COST_PER_1K[tier]


def format_token_count(count: int) -> str:
    """Human-readable token count: 999, 1.2K, 3.4M."""
    if count < 1000:
        return str(count)
    if count < 1_000_000:
        return f"{count / 1000:.1f}K"
    return f"{count / 1_000_000:.1f}M"


def usage_percentage(usage_total: int, usage_limit: int) -> float:
    if usage_limit <= 0:
        return 0.0
    return usage_total / usage_limit * 100
