"""Best-effort alignment of display sentences with returned speech marks.

Clients segment rendered text on their own, so their sentences rarely match
the backend's mark values character for character. Each sentence is paired
with the first unused mark whose text contains it or is contained by it.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .stitcher import SpeechMark

_NON_WORD = re.compile(r"[^\w]+", re.UNICODE)


def _normalize(value: str) -> str:
    return _NON_WORD.sub(" ", value.casefold()).strip()


def match_sentences_to_marks(
    sentences: Sequence[str],
    marks: Sequence[SpeechMark],
    *,
    min_match_chars: int = 3,
) -> list[int | None]:
    """Return, per sentence, the start time of its matching mark or ``None``.

    Marks are consumed in order: once a mark is matched, later sentences only
    look at the marks after it. Both sides must share at least
    ``min_match_chars`` normalized characters to count as a match.
    """

    normalized_marks = [_normalize(mark.value) for mark in marks]
    times: list[int | None] = []
    cursor = 0

    for sentence in sentences:
        needle = _normalize(sentence)
        matched: int | None = None
        if len(needle) >= min_match_chars:
            for position in range(cursor, len(marks)):
                candidate = normalized_marks[position]
                overlap = min(len(needle), len(candidate))
                if overlap < min_match_chars:
                    continue
                if needle in candidate or candidate in needle:
                    matched = position
                    break
        if matched is None:
            times.append(None)
            continue
        times.append(marks[matched].time)
        cursor = matched + 1

    return times


__all__ = ["match_sentences_to_marks"]
