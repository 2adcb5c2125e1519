"""Telemetry package: structured logging with request and caller correlation."""

from __future__ import annotations

from llmroute.telemetry.logging import (
    RequestIdMiddleware,
    bind_caller_context,
    clear_context,
    configure_logging,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_caller_context",
    "clear_context",
    "configure_logging",
]
