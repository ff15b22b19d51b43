"""Cache-aware speech synthesis for single-shot and chunked requests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..audio_cache import AudioCache, cache_key
from .chunking import build_chunks
from .errors import TextValidationError
from .highlight import match_sentences_to_marks
from .polly import SynthesisAttempt, SynthesisOutcome
from .stitcher import ChunkSynthesis, SpeechMark, parse_speech_marks, stitch
from .text import normalize_tts_text, split_into_sentences
from .voices import VoiceSelection, resolve_voice

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    async def synthesize(
        self,
        text: str,
        selection: VoiceSelection,
        *,
        want_marks: bool = False,
    ) -> SynthesisAttempt: ...


@dataclass(frozen=True)
class SpeechResult:
    """Outcome of one synthesis request.

    Exactly one of ``audio_url`` and ``inline_audio`` is set: the URL when the
    audio is (or already was) in the cache, the raw MP3 bytes otherwise.
    """

    cache_key: str
    cached: bool
    audio_url: str | None = None
    inline_audio: bytes | None = None
    size: int | None = None
    chunk_count: int | None = None
    speech_marks: list[SpeechMark] = field(default_factory=list)
    sentences: list[str] = field(default_factory=list)
    # Start time of each sentence's speech mark, None where none matched.
    sentence_times: list[int | None] = field(default_factory=list)


class SpeechPipeline:
    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        cache: AudioCache,
        *,
        default_language: str = "de",
        concurrency: int = 1,
        chunked_max_text_chars: int = 200_000,
        highlight_min_match_chars: int = 3,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._synthesizer = synthesizer
        self._cache = cache
        self._default_language = default_language
        self._concurrency = concurrency
        self._chunked_max_text_chars = chunked_max_text_chars
        self._highlight_min_match_chars = highlight_min_match_chars

    def _resolve_language(self, language: str | None) -> str:
        return language or self._default_language

    async def synthesize(
        self,
        text: Any,
        language: str | None = None,
        voice_id: str | None = None,
    ) -> SpeechResult:
        """Synthesize a short text in one request, reusing cached audio."""

        _require_text(text)
        language = self._resolve_language(language)
        selection = resolve_voice(language, voice_id)

        cleaned = normalize_tts_text(text)
        if not cleaned:
            raise TextValidationError("Text contains no speakable content")
        if len(cleaned) > selection.max_text_chars:
            raise TextValidationError(
                f"Text too long. Maximum {selection.max_text_chars} characters "
                f"for {selection.engine} voices.",
                max_length=selection.max_text_chars,
            )

        key = cache_key(text, language)
        lookup = await self._cache.check_cache(key)
        if lookup.exists and lookup.url:
            logger.info("Cache HIT: %s", key)
            return SpeechResult(cache_key=key, cached=True, audio_url=lookup.url)

        logger.info(
            "Cache MISS: %s (%s, %s, %s)",
            key,
            language,
            selection.voice,
            selection.engine,
        )
        attempt = await self._synthesizer.synthesize(cleaned, selection)
        audio = attempt.unwrap()

        write = await self._cache.store_audio(key, audio)
        if not write.success:
            logger.error("Failed to cache audio %s: %s", key, write.error)
            return SpeechResult(
                cache_key=key, cached=False, inline_audio=audio, size=len(audio)
            )
        return SpeechResult(
            cache_key=key, cached=False, audio_url=write.url, size=len(audio)
        )

    async def synthesize_chunked(
        self,
        text: Any,
        language: str | None = None,
    ) -> SpeechResult:
        """Synthesize text of any length as stitched chunks with speech marks.

        On a cache hit only the stored speech marks come back; the sentence
        list is not cached, so ``sentences`` and ``sentence_times`` are empty.
        """

        _require_text(text)
        if len(text) > self._chunked_max_text_chars:
            raise TextValidationError(
                f"Text too long. Maximum {self._chunked_max_text_chars} characters.",
                max_length=self._chunked_max_text_chars,
            )
        language = self._resolve_language(language)

        key = cache_key(text, language)
        lookup = await self._cache.check_cache(key)
        if lookup.exists and lookup.url:
            marks = await self._cache.get_speech_marks(key)
            logger.info(
                "Cache HIT (chunked): %s, %d speech marks", key, len(marks.marks)
            )
            return SpeechResult(
                cache_key=key,
                cached=True,
                audio_url=lookup.url,
                speech_marks=marks.marks,
            )

        selection = resolve_voice(language)
        # Up to the chunked ceiling of text; keep it off the event loop.
        sentences = await asyncio.to_thread(_prepare_sentences, text)
        chunks = build_chunks(sentences, selection.max_chunk_chars)
        if not chunks:
            raise TextValidationError("Text contains no speakable content")

        logger.info(
            "Cache MISS (chunked): %s, processing %d chunk(s) for %s",
            key,
            len(chunks),
            language,
        )
        results = await self._synthesize_chunks(chunks, selection)
        stitched = stitch(results)

        write = await self._cache.store_audio(key, stitched.audio)
        if write.success:
            await self._cache.store_speech_marks(key, stitched.speech_marks)
            audio_url, inline_audio = write.url, None
        else:
            logger.error("Failed to cache chunked audio %s: %s", key, write.error)
            audio_url, inline_audio = None, stitched.audio

        return SpeechResult(
            cache_key=key,
            cached=False,
            audio_url=audio_url,
            inline_audio=inline_audio,
            size=stitched.size,
            chunk_count=stitched.chunk_count,
            speech_marks=stitched.speech_marks,
            sentences=sentences,
            sentence_times=match_sentences_to_marks(
                sentences,
                stitched.speech_marks,
                min_match_chars=self._highlight_min_match_chars,
            ),
        )

    async def _synthesize_chunks(
        self, chunks: list[str], selection: VoiceSelection
    ) -> list[ChunkSynthesis]:
        if self._concurrency == 1 or len(chunks) == 1:
            return [
                await self._synthesize_chunk(index, chunk, selection)
                for index, chunk in enumerate(chunks)
            ]

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(index: int, chunk: str) -> ChunkSynthesis:
            async with semaphore:
                return await self._synthesize_chunk(index, chunk, selection)

        tasks = [
            asyncio.create_task(run(index, chunk))
            for index, chunk in enumerate(chunks)
        ]
        try:
            # Completion order is irrelevant; stitch() merges by index.
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _synthesize_chunk(
        self, index: int, chunk: str, selection: VoiceSelection
    ) -> ChunkSynthesis:
        audio_attempt = await self._synthesizer.synthesize(chunk, selection)
        audio = audio_attempt.unwrap()

        marks_attempt = await self._synthesizer.synthesize(
            chunk, selection, want_marks=True
        )
        marks = parse_speech_marks(marks_attempt.unwrap())

        if SynthesisOutcome.PLAIN_TEXT_FALLBACK in (
            audio_attempt.outcome,
            marks_attempt.outcome,
        ):
            logger.info("Chunk %d synthesized via plain-text fallback", index)
        return ChunkSynthesis(index=index, text=chunk, audio=audio, marks=marks)


def _prepare_sentences(text: str) -> list[str]:
    return split_into_sentences(normalize_tts_text(text))


def _require_text(text: Any) -> None:
    if not isinstance(text, str) or not text:
        raise TextValidationError("Text is required and must be a string")


__all__ = ["SpeechPipeline", "SpeechResult", "SpeechSynthesizer"]
