"""Tests for the keyword task classifier."""

from __future__ import annotations

import pytest

from llmroute.routing.classifier import TaskType, classify


@pytest.mark.parametrize(
    ("prompt", "expected"),
    [
        ("Implement a binary search", TaskType.CODE),
        ("Solve the equation 2x + 3 = 11", TaskType.MATH),
        ("Write a poem about rivers", TaskType.CREATIVE),
        ("What is the capital of France?", TaskType.GENERAL),
        ("", TaskType.GENERAL),
    ],
)
def test_classify_basic_categories(prompt: str, expected: TaskType) -> None:
    assert classify(prompt) == expected


def test_code_wins_over_creative() -> None:
    """'write' is creative but 'function' is code, and code is checked first."""
    assert classify("Write a python function to sort a list") == TaskType.CODE


def test_math_wins_over_creative() -> None:
    assert classify("Calculate how long it takes to read a story") == TaskType.MATH


def test_classify_is_case_insensitive() -> None:
    assert classify("DEBUG THIS PLEASE") == TaskType.CODE
    assert classify("A Short Story") == TaskType.CREATIVE


def test_language_names_match_on_word_boundaries() -> None:
    assert classify("How do channels work in go?") == TaskType.CODE
    assert classify("Any tips for rust and typescript interop?") == TaskType.CODE
    # "go" inside "going" is not a language mention
    assert classify("Let's get going with the plan") == TaskType.GENERAL


def test_classify_is_deterministic() -> None:
    prompts = ["Write a poem", "compute the mean", "hello there", "fix my java"]
    assert [classify(p) for p in prompts] == [classify(p) for p in prompts]
