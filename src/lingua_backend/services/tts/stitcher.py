"""Join per-chunk audio and speech marks into one continuous asset."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import SynthesisError

# Polly marks are real times; the pad covers the tail after the last sentence.
FIXED_PAD_MS = 500
MIN_DURATION_MS = 500
CHARS_PER_WORD = 5
WORDS_PER_MINUTE = 150


@dataclass(frozen=True)
class SpeechMark:
    time: int
    value: str

    def shifted(self, offset_ms: int) -> "SpeechMark":
        return SpeechMark(time=self.time + offset_ms, value=self.value)

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "value": self.value}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SpeechMark":
        return cls(time=int(payload["time"]), value=str(payload.get("value", "")))


@dataclass(frozen=True)
class ChunkSynthesis:
    """Audio plus chunk-local speech marks for one chunk."""

    index: int
    text: str
    audio: bytes
    marks: list[SpeechMark] = field(default_factory=list)


@dataclass(frozen=True)
class StitchedAudio:
    audio: bytes
    speech_marks: list[SpeechMark]
    chunk_count: int

    @property
    def size(self) -> int:
        return len(self.audio)


def parse_speech_marks(payload: bytes | str) -> list[SpeechMark]:
    """Parse Polly's newline-delimited JSON speech marks."""

    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    marks: list[SpeechMark] = []
    for line in text.strip().splitlines():
        if not line.strip():
            continue
        try:
            record = json.loads(line)
            marks.append(SpeechMark.from_dict(record))
        except (ValueError, KeyError, TypeError) as exc:
            raise SynthesisError(f"Malformed speech mark record: {line[:80]}", exc) from exc
    return marks


def estimate_duration_ms(text: str) -> int:
    """Reading-speed estimate used when a chunk produced no marks."""

    words = len(text) / CHARS_PER_WORD
    estimate = round(words / WORDS_PER_MINUTE * 60 * 1000)
    return max(estimate, MIN_DURATION_MS)


def chunk_duration_ms(chunk: ChunkSynthesis) -> int:
    if chunk.marks:
        return chunk.marks[-1].time + FIXED_PAD_MS
    return estimate_duration_ms(chunk.text)


def stitch(results: Iterable[ChunkSynthesis]) -> StitchedAudio:
    """Concatenate chunks in index order, shifting marks by the running offset.

    Results may arrive in completion order; they are merged by ``index`` so
    chunk ``k`` is always offset by the summed durations of chunks ``0..k-1``.
    """

    ordered = sorted(results, key=lambda chunk: chunk.index)
    indexes = [chunk.index for chunk in ordered]
    if indexes != list(range(len(ordered))):
        raise ValueError(f"Chunk indexes must be contiguous from 0, got {indexes}")

    audio_parts: list[bytes] = []
    marks: list[SpeechMark] = []
    offset = 0
    for chunk in ordered:
        audio_parts.append(chunk.audio)
        marks.extend(mark.shifted(offset) for mark in chunk.marks)
        offset += chunk_duration_ms(chunk)

    return StitchedAudio(
        audio=b"".join(audio_parts),
        speech_marks=marks,
        chunk_count=len(ordered),
    )


__all__ = [
    "ChunkSynthesis",
    "FIXED_PAD_MS",
    "MIN_DURATION_MS",
    "SpeechMark",
    "StitchedAudio",
    "chunk_duration_ms",
    "estimate_duration_ms",
    "parse_speech_marks",
    "stitch",
]
