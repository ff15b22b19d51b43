"""Greedy packing of sentences into synthesis-sized chunks."""

from __future__ import annotations

from collections.abc import Iterable


def build_chunks(sentences: Iterable[str], max_chunk_chars: int) -> list[str]:
    """Pack whole sentences, in order, into chunks of at most ``max_chunk_chars``.

    Sentences are joined with a single space. A sentence longer than the
    budget is never split; it becomes a chunk of its own.
    """

    if max_chunk_chars <= 0:
        raise ValueError("max_chunk_chars must be positive")

    chunks: list[str] = []
    current = ""

    for raw in sentences:
        sentence = raw.strip()
        if not sentence:
            continue

        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chunk_chars:
            current = candidate
            continue

        if current:
            chunks.append(current)
        current = sentence

    if current:
        chunks.append(current)
    return chunks


__all__ = ["build_chunks"]
