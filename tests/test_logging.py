"""Tests for structured logging helpers."""

from __future__ import annotations

import structlog

from llmroute.telemetry.logging import bind_caller_context, clear_context, configure_logging


def test_configure_logging_json_and_console() -> None:
    configure_logging(json_logs=True, log_level="INFO")
    structlog.get_logger("test").info("logging.configured_json")

    configure_logging(json_logs=False, log_level="DEBUG")
    structlog.get_logger("test").debug("logging.configured_console")


def test_caller_context_binding() -> None:
    clear_context()
    bind_caller_context("caller-7", "pro")

    context = structlog.contextvars.get_contextvars()
    assert context["caller_id"] == "caller-7"
    assert context["tier"] == "pro"

    clear_context()
    assert structlog.contextvars.get_contextvars() == {}
