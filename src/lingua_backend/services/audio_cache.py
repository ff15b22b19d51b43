"""Content-addressed cache for synthesized audio and its speech marks.

Audio lives at ``{language}/{md5(text)}.mp3`` in the object store and the
sentence speech marks sit beside it at ``{language}/{md5(text)}.json``. The
key is derived from the raw request text, before any normalization, so the
same request always maps to the same object.

Every operation degrades instead of raising: when the store is missing or
failing, lookups report a miss and writes report a failure, and the caller
keeps serving freshly synthesized audio without caching it.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .gcs import ObjectExistsError, StoredObject
from .tts.errors import CacheWriteError
from .tts.stitcher import SpeechMark

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/mpeg"
MARKS_CONTENT_TYPE = "application/json"
AUDIO_EXTENSION = ".mp3"
MARKS_EXTENSION = ".json"
CACHE_CONTROL = "public, max-age=2592000"  # 30 days

_NOT_CONFIGURED = "Audio cache storage not configured"


class ObjectStore(Protocol):
    def exists(self, name: str) -> bool: ...

    def upload_bytes(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        overwrite: bool = False,
        cache_control: str | None = None,
    ) -> None: ...

    def download_bytes(self, name: str) -> bytes | None: ...

    def list_objects(
        self, prefix: str = "", *, max_results: int | None = None
    ) -> list[StoredObject]: ...

    def delete(self, name: str) -> bool: ...

    def url_for(self, name: str, *, expires_in: timedelta | None = None) -> str: ...


@dataclass(frozen=True)
class CacheLookup:
    exists: bool
    url: str | None = None


@dataclass(frozen=True)
class CacheWriteResult:
    success: bool
    url: str | None = None
    error: str | None = None
    already_cached: bool = False


@dataclass(frozen=True)
class SpeechMarksLookup:
    success: bool
    marks: list[SpeechMark] = field(default_factory=list)


@dataclass(frozen=True)
class CacheDeleteResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class CachedFileInfo:
    name: str
    size: int
    created: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "created": self.created.isoformat() if self.created else None,
        }


@dataclass(frozen=True)
class CacheStats:
    file_count: int = 0
    total_size: int = 0
    files: list[CachedFileInfo] = field(default_factory=list)


@dataclass(frozen=True)
class CacheEvictionResult:
    deleted_count: int
    error: str | None = None


def cache_key(text: str, language: str) -> str:
    """Return ``{language}/{md5-hex of text}.mp3`` for the raw request text."""

    digest = hashlib.md5(text.encode("utf-8")).hexdigest()
    return f"{language}/{digest}{AUDIO_EXTENSION}"


def speech_marks_key(key: str) -> str:
    if key.endswith(AUDIO_EXTENSION):
        return key[: -len(AUDIO_EXTENSION)] + MARKS_EXTENSION
    return key + MARKS_EXTENSION


class AudioCache:
    """Async facade over an object store holding cached TTS audio."""

    def __init__(
        self,
        store: ObjectStore | None,
        *,
        signed_url_ttl: timedelta | None = None,
        stats_limit: int = 1000,
    ) -> None:
        self._store = store
        self._signed_url_ttl = signed_url_ttl
        self._stats_limit = stats_limit
        if store is None:
            logger.warning("%s. Audio caching disabled.", _NOT_CONFIGURED)

    @property
    def enabled(self) -> bool:
        return self._store is not None

    cache_key = staticmethod(cache_key)
    speech_marks_key = staticmethod(speech_marks_key)

    def _url_for(self, key: str) -> str:
        if self._store is None:
            raise RuntimeError(_NOT_CONFIGURED)
        return self._store.url_for(key, expires_in=self._signed_url_ttl)

    async def check_cache(self, key: str) -> CacheLookup:
        if self._store is None:
            return CacheLookup(exists=False)
        try:
            exists = await asyncio.to_thread(self._store.exists, key)
            if not exists:
                return CacheLookup(exists=False)
            url = await asyncio.to_thread(self._url_for, key)
        except Exception as exc:
            logger.error("Error checking audio cache for %s: %s", key, exc)
            return CacheLookup(exists=False)
        return CacheLookup(exists=True, url=url)

    async def store_audio(self, key: str, audio: bytes) -> CacheWriteResult:
        """Write audio once. An existing object counts as a successful write."""

        if self._store is None:
            return CacheWriteResult(success=False, error=_NOT_CONFIGURED)

        already_cached = False
        try:
            await asyncio.to_thread(
                self._store.upload_bytes,
                key,
                audio,
                content_type=AUDIO_CONTENT_TYPE,
                overwrite=False,
                cache_control=CACHE_CONTROL,
            )
        except ObjectExistsError:
            # A concurrent request for the same text won the race.
            logger.info("Audio already cached by a concurrent write: %s", key)
            already_cached = True
        except Exception as exc:
            error = CacheWriteError(f"Failed to store audio {key}: {exc}", exc)
            logger.error("%s", error)
            return CacheWriteResult(success=False, error=str(error))

        try:
            url = await asyncio.to_thread(self._url_for, key)
        except Exception as exc:
            logger.error("Failed to resolve URL for cached audio %s: %s", key, exc)
            return CacheWriteResult(success=False, error=str(exc))

        if not already_cached:
            logger.info("Audio stored successfully: %s (%d bytes)", key, len(audio))
        return CacheWriteResult(success=True, url=url, already_cached=already_cached)

    async def store_speech_marks(
        self, key: str, marks: list[SpeechMark]
    ) -> CacheWriteResult:
        if self._store is None:
            return CacheWriteResult(success=False, error=_NOT_CONFIGURED)

        marks_key = speech_marks_key(key)
        payload = json.dumps([mark.to_dict() for mark in marks]).encode("utf-8")
        try:
            await asyncio.to_thread(
                self._store.upload_bytes,
                marks_key,
                payload,
                content_type=MARKS_CONTENT_TYPE,
                overwrite=True,
                cache_control=CACHE_CONTROL,
            )
        except Exception as exc:
            logger.error("Error storing speech marks %s: %s", marks_key, exc)
            return CacheWriteResult(success=False, error=str(exc))

        logger.info("Speech marks stored: %s (%d marks)", marks_key, len(marks))
        return CacheWriteResult(success=True)

    async def get_speech_marks(self, key: str) -> SpeechMarksLookup:
        """Return cached marks; a missing sidecar yields an empty list."""

        if self._store is None:
            return SpeechMarksLookup(success=False)

        marks_key = speech_marks_key(key)
        try:
            payload = await asyncio.to_thread(self._store.download_bytes, marks_key)
        except Exception as exc:
            logger.error("Error reading speech marks %s: %s", marks_key, exc)
            return SpeechMarksLookup(success=False)

        if payload is None:
            logger.info("No cached speech marks found: %s", marks_key)
            return SpeechMarksLookup(success=False)

        try:
            records = json.loads(payload.decode("utf-8"))
            marks = [SpeechMark.from_dict(record) for record in records]
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Corrupt speech marks sidecar %s: %s", marks_key, exc)
            return SpeechMarksLookup(success=False)

        logger.debug("Speech marks retrieved: %s (%d marks)", marks_key, len(marks))
        return SpeechMarksLookup(success=True, marks=marks)

    async def delete_audio(self, key: str) -> CacheDeleteResult:
        """Remove the audio object and its speech-marks sidecar."""

        if self._store is None:
            return CacheDeleteResult(success=False, error=_NOT_CONFIGURED)
        try:
            await asyncio.to_thread(self._store.delete, key)
            await asyncio.to_thread(self._store.delete, speech_marks_key(key))
        except Exception as exc:
            logger.error("Error deleting cached audio %s: %s", key, exc)
            return CacheDeleteResult(success=False, error=str(exc))

        logger.info("Audio deleted: %s", key)
        return CacheDeleteResult(success=True)

    async def get_stats(self, language: str | None = None) -> CacheStats:
        if self._store is None:
            return CacheStats()

        prefix = f"{language.strip('/')}/" if language else ""
        try:
            objects = await asyncio.to_thread(self._store.list_objects, prefix)
        except Exception as exc:
            logger.error("Error getting audio cache stats: %s", exc)
            return CacheStats()

        # Listings come back in name order; the limit keeps the newest.
        newest = sorted(objects, key=_created_sort_key, reverse=True)
        files = [
            CachedFileInfo(name=obj.name, size=obj.size, created=obj.created)
            for obj in newest[: self._stats_limit]
        ]
        return CacheStats(
            file_count=len(files),
            total_size=sum(info.size for info in files),
            files=files,
        )

    async def clear_old_cache(
        self, older_than_days: int = 30, *, now: datetime | None = None
    ) -> CacheEvictionResult:
        """Delete every cached object created before ``now - older_than_days``.

        Covers the whole store; eviction is not scoped to a language.
        """

        if self._store is None:
            return CacheEvictionResult(deleted_count=0, error=_NOT_CONFIGURED)

        reference = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        cutoff = reference - timedelta(days=older_than_days)

        try:
            objects = await asyncio.to_thread(self._store.list_objects, "")
        except Exception as exc:
            logger.error("Error listing audio cache for eviction: %s", exc)
            return CacheEvictionResult(deleted_count=0, error=str(exc))

        expired = [
            obj for obj in objects if obj.created is not None and _as_utc(obj.created) < cutoff
        ]
        deleted = 0
        for obj in expired:
            try:
                if await asyncio.to_thread(self._store.delete, obj.name):
                    deleted += 1
            except Exception:
                logger.warning("Failed to delete cached object %s", obj.name, exc_info=True)

        if deleted:
            logger.info(
                "Deleted %d cached object(s) older than %d day(s)",
                deleted,
                older_than_days,
            )
        return CacheEvictionResult(deleted_count=deleted)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _created_sort_key(obj: StoredObject) -> datetime:
    if obj.created is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return _as_utc(obj.created)


__all__ = [
    "AudioCache",
    "CacheDeleteResult",
    "CacheEvictionResult",
    "CacheLookup",
    "CacheStats",
    "CacheWriteResult",
    "CachedFileInfo",
    "ObjectStore",
    "SpeechMarksLookup",
    "cache_key",
    "speech_marks_key",
]
