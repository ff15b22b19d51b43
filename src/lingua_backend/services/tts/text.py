"""Sentence splitting and text cleanup for speech synthesis."""

from __future__ import annotations

import re

_CRLF = re.compile(r"\r\n")
_HORIZONTAL_WS = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n{2,}")

# Terminators plus optional closing quotes/brackets, followed by whitespace or
# the end of the text. Terminators inside a token ("1.5", "e.g.x") never end a
# sentence. Matches only start at the first mark of a run, which keeps long
# runs like "!?!?" linear.
_SENTENCE_END = re.compile(r"(?<![.!?])[.!?]+[\"'\)\]”’»]*(?=\s|$)")

_UNICODE_ELLIPSIS = re.compile(r"…|â€¦")
# Three or more periods, optionally spaced. Never spans a line break, and
# only starts at the beginning of a space run.
_ELLIPSIS = re.compile(r"(?<![ \t.])[ \t]*\.(?:[ \t]*\.){2,}")
_REPEATED_PUNCTUATION = re.compile(r"([!?.,;:])\1+")
_STANDALONE_PUNCTUATION = re.compile(r"(^|\s)[,;:!?]+(?=\s|$)")
_MULTI_SPACE = re.compile(r"[ \t]{2,}")


def split_into_sentences(text: str | None) -> list[str]:
    """Split ``text`` into trimmed, non-empty sentences in source order.

    A trailing run without a terminator is still returned as the last
    sentence. Empty or whitespace-only input yields an empty list.
    """

    if not text:
        return []

    normalized = _CRLF.sub("\n", text)
    normalized = _HORIZONTAL_WS.sub(" ", normalized)
    normalized = _BLANK_LINES.sub("\n", normalized)

    sentences: list[str] = []
    start = 0
    for match in _SENTENCE_END.finditer(normalized):
        sentence = normalized[start : match.end()].strip()
        if sentence:
            sentences.append(sentence)
        start = match.end()

    tail = normalized[start:].strip()
    if tail:
        sentences.append(tail)
    return sentences


def _normalize_once(text: str) -> str:
    cleaned = _UNICODE_ELLIPSIS.sub("...", text)
    cleaned = _ELLIPSIS.sub(".", cleaned)
    cleaned = _REPEATED_PUNCTUATION.sub(r"\1", cleaned)
    cleaned = _STANDALONE_PUNCTUATION.sub(" ", cleaned)
    cleaned = _MULTI_SPACE.sub(" ", cleaned)
    return cleaned.strip()


def normalize_tts_text(text: str | None) -> str:
    """Clean raw text so it reads naturally once wrapped in SSML.

    Ellipses collapse to a single period (so Polly does not read out
    "punkt punkt punkt"), repeated punctuation collapses to one mark,
    punctuation-only tokens are dropped, and runs of spaces collapse.
    Newlines are kept so paragraph breaks survive into the markup, and an
    ellipsis never swallows one.

    Removing a token can bring punctuation together again, so the cleanup is
    repeated until the text stops changing. After the first pass every change
    shortens the text, which bounds the loop and makes the result idempotent.
    """

    if not text:
        return ""

    cleaned = text
    while True:
        candidate = _normalize_once(cleaned)
        if candidate == cleaned:
            return candidate
        cleaned = candidate


def escape_xml(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


__all__ = ["escape_xml", "normalize_tts_text", "split_into_sentences"]
