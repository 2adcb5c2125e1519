"""Prompt segmentation for prompts larger than a model's context budget.

The split is purely size-driven. Each chunk is grown as far as the budget
allows and then cut at the last word start inside the window, so words
are not split. Whitespace stays in the text, which makes
``"".join(chunks) == text`` hold exactly. A cut is only taken if the chunk
before it holds a word, so a window that opens with whitespace followed by
one long word is hard-cut at the budget instead of emitting a blank chunk.
A window with no whitespace at all is hard-cut the same way.

Taking the furthest permitted cut each time keeps the chunk count minimal
for the given budget and cut points.
"""

from __future__ import annotations

import structlog

from llmroute.errors import SegmentationConfigError

log = structlog.get_logger(__name__)


def segment(text: str, max_chars_per_chunk: int) -> list[str]:
    """Split ``text`` into ordered chunks of at most ``max_chars_per_chunk``.

    Args:
        text: Raw prompt text
        max_chars_per_chunk: Character budget per chunk

    Returns:
        Non-empty chunks that concatenate back to ``text``. Empty input
        yields an empty list.

    Raises:
        SegmentationConfigError: If the budget is not positive
    """
    if max_chars_per_chunk <= 0:
        raise SegmentationConfigError(
            f"max_chars_per_chunk must be positive, got {max_chars_per_chunk}"
        )

    chunks: list[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = start + max_chars_per_chunk
        if end >= length:
            chunks.append(text[start:])
            break
        chunks.append(text[start : _cut_point(text, start, end)])
        start += len(chunks[-1])

    log.debug(
        "segmenter.split",
        text_chars=length,
        max_chars=max_chars_per_chunk,
        chunk_count=len(chunks),
    )
    return chunks


def _cut_point(text: str, start: int, end: int) -> int:
    """Furthest word start in ``text[start:end]`` that leaves a non-blank chunk.

    Leading whitespace of the window belongs to the chunk but is never a
    chunk on its own. Falls back to ``end`` when no word starts inside the
    window.
    """
    first = start
    while first < end and text[first].isspace():
        first += 1
    for i in range(end, first, -1):
        if text[i - 1].isspace() and not text[i].isspace():
            return i
    return end
