"""SSML envelope construction for Polly requests."""

from __future__ import annotations

import re

from .text import escape_xml, split_into_sentences

SENTENCE_BREAK = '<break time="250ms"/>'
PARAGRAPH_BREAK = '<break time="400ms"/>'

_PARAGRAPH_SPLIT = re.compile(r"\n{2,}")


def build_ssml(text: str) -> str:
    """Wrap normalized text in ``<speak>`` with sentence and paragraph pauses.

    Paragraphs are separated by blank lines. Paragraphs that yield no
    sentences are skipped so the backend never sees an empty ``<p>``.
    """

    paragraphs: list[str] = []
    for raw_paragraph in _PARAGRAPH_SPLIT.split(text or ""):
        sentences = split_into_sentences(raw_paragraph.strip())
        if not sentences:
            continue
        body = SENTENCE_BREAK.join(
            f"<s>{escape_xml(sentence)}</s>" for sentence in sentences
        )
        paragraphs.append(f"<p>{body}</p>")

    return f"<speak>{PARAGRAPH_BREAK.join(paragraphs)}</speak>"


__all__ = ["PARAGRAPH_BREAK", "SENTENCE_BREAK", "build_ssml"]
