"""Polly voice table and per-engine limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Engine = Literal["neural", "standard"]

VOICE_MAP: dict[str, str] = {
    "de": "Vicki",
    "en": "Joanna",
    "tr": "Filiz",
    "fr": "Lea",
    "es": "Lucia",
    "it": "Bianca",
    "pt": "Ines",
    "ru": "Tatyana",
    "zh": "Zhiyu",
    "ja": "Mizuki",
    "ko": "Seoyeon",
    "ar": "Zeina",
}

ENGINE_MAP: dict[str, Engine] = {
    "de": "neural",
    "en": "neural",
    "tr": "standard",
    "fr": "neural",
    "es": "neural",
    "it": "neural",
    "pt": "neural",
    "ru": "standard",
    "zh": "neural",
    "ja": "standard",
    "ko": "standard",
    "ar": "standard",
}

DEFAULT_VOICE = "Joanna"
DEFAULT_ENGINE: Engine = "neural"

# Longest normalized text accepted by the single-shot endpoint.
MAX_TEXT_CHARS: dict[Engine, int] = {"neural": 600, "standard": 3000}

# Chunk budgets leave headroom below MAX_TEXT_CHARS for SSML tags.
MAX_CHUNK_CHARS: dict[Engine, int] = {"neural": 450, "standard": 2500}


@dataclass(frozen=True)
class VoiceSelection:
    language: str
    voice: str
    engine: Engine
    supported: bool

    @property
    def max_text_chars(self) -> int:
        return MAX_TEXT_CHARS[self.engine]

    @property
    def max_chunk_chars(self) -> int:
        return MAX_CHUNK_CHARS[self.engine]


def resolve_voice(language: str, voice_override: str | None = None) -> VoiceSelection:
    """Map a language code to its Polly voice and engine.

    Unknown languages fall back to the default voice/engine pair. An explicit
    ``voice_override`` replaces the voice but keeps the language's engine.
    """

    supported = language in VOICE_MAP
    voice = VOICE_MAP.get(language, DEFAULT_VOICE)
    engine = ENGINE_MAP.get(language, DEFAULT_ENGINE)
    if voice_override:
        voice = voice_override
    return VoiceSelection(
        language=language,
        voice=voice,
        engine=engine,
        supported=supported,
    )


__all__ = [
    "DEFAULT_ENGINE",
    "DEFAULT_VOICE",
    "ENGINE_MAP",
    "Engine",
    "MAX_CHUNK_CHARS",
    "MAX_TEXT_CHARS",
    "VOICE_MAP",
    "VoiceSelection",
    "resolve_voice",
]
