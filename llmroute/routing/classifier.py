"""Keyword task classifier.

Assigns a coarse task category to a prompt so the router can prefer models
tagged for that kind of work. Categories are checked in a fixed priority
order (code, math, creative) and the first match wins; anything else is
``general``. Matching is case-insensitive substring search, plus a word-
boundary pattern for programming language names that are too short to
match safely as substrings ("go", "js").
"""

from __future__ import annotations

import re
from enum import StrEnum


class TaskType(StrEnum):
    CODE = "code"
    MATH = "math"
    CREATIVE = "creative"
    GENERAL = "general"


CODE_KEYWORDS = ("code", "program", "function", "algorithm", "implement", "debug")
MATH_KEYWORDS = ("math", "equation", "calculate", "solve", "compute")
CREATIVE_KEYWORDS = ("story", "poem", "write", "creative", "fiction")

_LANGUAGE_PATTERN = re.compile(r"\b(js|javascript|python|java|c\+\+|typescript|rust|go)\b")

_PRIORITY: tuple[tuple[TaskType, tuple[str, ...]], ...] = (
    (TaskType.CODE, CODE_KEYWORDS),
    (TaskType.MATH, MATH_KEYWORDS),
    (TaskType.CREATIVE, CREATIVE_KEYWORDS),
)


def classify(prompt: str) -> TaskType:
    """Return the task category for ``prompt``. Pure and deterministic."""
    lowered = prompt.lower()

    for task_type, keywords in _PRIORITY:
        if any(keyword in lowered for keyword in keywords):
            return task_type
        if task_type == TaskType.CODE and _LANGUAGE_PATTERN.search(lowered):
            return task_type

    return TaskType.GENERAL
