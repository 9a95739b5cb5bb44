"""Outbound message chunking for the transport size limit."""

from __future__ import annotations

import re
from typing import List

MAX_MESSAGE_LENGTH = 4000

_SENTENCE_END_RE = re.compile(r"[.!?]\s")


def chunk_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split *text* into segments of at most *max_len* characters.

    Each split point is searched backwards from ``max_len``, preferring a
    paragraph break, then a line break, then a sentence end (all past 50%
    of the limit), then a space past 30%, and finally a hard cut. Segments
    are stripped; when more than one remains each gets a ``[i/N]`` header.
    """
    if max_len < 1:
        raise ValueError(f"max_len must be positive, got {max_len}")
    if len(text) <= max_len:
        return [text]

    chunks: List[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        split_index = _find_split_point(remaining, max_len)
        piece = remaining[:split_index].strip()
        if piece:
            chunks.append(piece)
        remaining = remaining[split_index:].strip()

    if not chunks:
        return [""]
    if len(chunks) > 1:
        total = len(chunks)
        return [f"[{i}/{total}]\n{chunk}" for i, chunk in enumerate(chunks, start=1)]
    return chunks


def _find_split_point(text: str, max_len: int) -> int:
    half = max_len * 0.5

    paragraph_break = text.rfind("\n\n", 0, max_len + 2)
    if paragraph_break > half:
        return paragraph_break + 2

    line_break = text.rfind("\n", 0, max_len + 1)
    if line_break > half:
        return line_break + 1

    sentence_end = _find_last_sentence_end(text, max_len)
    if sentence_end > half:
        return sentence_end

    word_break = text.rfind(" ", 0, max_len + 1)
    if word_break > max_len * 0.3:
        return word_break + 1

    return max_len


def _find_last_sentence_end(text: str, max_len: int) -> int:
    """Index just past the last ``.``/``!``/``?`` followed by whitespace, or -1."""
    last = -1
    for match in _SENTENCE_END_RE.finditer(text[:max_len]):
        last = match.start() + 1
    return last
