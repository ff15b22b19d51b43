"""Routes for Polly speech synthesis and the audio cache."""

from __future__ import annotations

import base64
import logging
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..schemas.tts import (
    CacheEvictionResponse,
    CacheStatsResponse,
    CacheUsageHint,
    CachedFilePayload,
    SpeechMarkPayload,
    SynthesizeChunkedRequest,
    SynthesizeChunkedResponse,
    SynthesizeRequest,
    SynthesizeResponse,
)
from ..services.audio_cache import AUDIO_CONTENT_TYPE, AudioCache
from ..services.auth import require_user
from ..services.tts.errors import (
    InvalidSynthesisParameters,
    TextValidationError,
    ThrottlingError,
)
from ..services.tts.pipeline import SpeechPipeline, SpeechResult
from ..services.tts.voices import (
    DEFAULT_ENGINE,
    DEFAULT_VOICE,
    ENGINE_MAP,
    VOICE_MAP,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/tts",
    tags=["tts"],
    dependencies=[Depends(require_user)],
)


def get_speech_pipeline(request: Request) -> SpeechPipeline:
    pipeline = getattr(request.app.state, "speech_pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Speech pipeline unavailable")
    return pipeline


def get_audio_cache(request: Request) -> AudioCache:
    cache = getattr(request.app.state, "audio_cache", None)
    if cache is None:
        raise HTTPException(status_code=500, detail="Audio cache unavailable")
    return cache


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings is not None and settings.is_development)


def _raise_for_synthesis_error(request: Request, exc: Exception) -> NoReturn:
    if isinstance(exc, TextValidationError):
        detail: dict[str, Any] = {"error": str(exc)}
        if exc.max_length is not None:
            detail["maxLength"] = exc.max_length
        raise HTTPException(status_code=400, detail=detail) from exc
    if isinstance(exc, InvalidSynthesisParameters):
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid parameters", "message": str(exc)},
        ) from exc
    if isinstance(exc, ThrottlingError):
        raise HTTPException(
            status_code=429,
            detail={"error": "Rate limit exceeded. Please try again in a moment."},
        ) from exc

    logger.error("Synthesis error: %s", exc, exc_info=True)
    raise HTTPException(
        status_code=500,
        detail={
            "error": "Failed to synthesize speech",
            "message": str(exc) if _is_development(request) else None,
        },
    ) from exc


def _envelope(result: SpeechResult) -> dict[str, Any]:
    inline = (
        base64.b64encode(result.inline_audio).decode("ascii")
        if result.inline_audio is not None
        else None
    )
    payload: dict[str, Any] = {
        "audioUrl": result.audio_url,
        "inlineAudioBase64": inline,
        "mimeType": AUDIO_CONTENT_TYPE,
        "cached": result.cached,
        "cacheKey": result.cache_key,
    }
    if result.size is not None:
        payload["size"] = result.size
    return payload


@router.post(
    "/synthesize",
    response_model=SynthesizeResponse,
    response_model_exclude_unset=True,
)
async def synthesize(
    request: Request,
    body: SynthesizeRequest,
    pipeline: SpeechPipeline = Depends(get_speech_pipeline),
) -> SynthesizeResponse:
    try:
        result = await pipeline.synthesize(body.text, body.language, body.voiceId)
    except Exception as exc:
        _raise_for_synthesis_error(request, exc)
    return SynthesizeResponse(**_envelope(result))


@router.post(
    "/synthesize-chunked",
    response_model=SynthesizeChunkedResponse,
    response_model_exclude_unset=True,
)
async def synthesize_chunked(
    request: Request,
    body: SynthesizeChunkedRequest,
    pipeline: SpeechPipeline = Depends(get_speech_pipeline),
) -> SynthesizeChunkedResponse:
    try:
        result = await pipeline.synthesize_chunked(body.text, body.language)
    except Exception as exc:
        _raise_for_synthesis_error(request, exc)

    payload = _envelope(result)
    if result.chunk_count is not None:
        payload["chunks"] = result.chunk_count
    payload["speechMarks"] = [
        SpeechMarkPayload(**mark.to_dict()) for mark in result.speech_marks
    ]
    payload["sentences"] = list(result.sentences)
    payload["sentenceTimes"] = list(result.sentence_times)
    return SynthesizeChunkedResponse(**payload)


@router.get("/voices")
async def get_voices(language: Optional[str] = Query(default=None)) -> dict[str, Any]:
    if language and language in VOICE_MAP:
        return {
            "language": language,
            "voice": VOICE_MAP[language],
            "engine": ENGINE_MAP[language],
            "available": True,
        }
    if language:
        return {
            "language": language,
            "voice": DEFAULT_VOICE,
            "engine": DEFAULT_ENGINE,
            "available": False,
            "message": "Language not supported, using default voice",
        }
    return {"voices": dict(VOICE_MAP), "engines": dict(ENGINE_MAP)}


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(
    language: Optional[str] = Query(default=None),
    cache: AudioCache = Depends(get_audio_cache),
) -> CacheStatsResponse:
    stats = await cache.get_stats(language)
    return CacheStatsResponse(
        fileCount=stats.file_count,
        totalSize=stats.total_size,
        totalSizeMB=f"{stats.total_size / 1024 / 1024:.2f}",
        files=[CachedFilePayload(**info.to_dict()) for info in stats.files],
    )


async def _clear_cache(
    cache: AudioCache,
    language: str | None,
    older_than_days: int | None,
) -> CacheEvictionResponse | CacheUsageHint:
    if older_than_days is not None:
        result = await cache.clear_old_cache(older_than_days)
        if result.error:
            raise HTTPException(status_code=500, detail={"error": result.error})
        return CacheEvictionResponse(
            deletedCount=result.deleted_count,
            message=(
                f"Deleted {result.deleted_count} files older than "
                f"{older_than_days} days"
            ),
        )

    stats = await cache.get_stats(language)
    return CacheUsageHint(
        message="Use ?olderThanDays=30 to delete old files",
        currentFiles=stats.file_count,
    )


@router.delete("/cache", response_model=CacheEvictionResponse | CacheUsageHint)
async def clear_cache(
    older_than_days: Optional[int] = Query(default=None, alias="olderThanDays", ge=0),
    cache: AudioCache = Depends(get_audio_cache),
) -> CacheEvictionResponse | CacheUsageHint:
    return await _clear_cache(cache, None, older_than_days)


@router.delete(
    "/cache/{language}", response_model=CacheEvictionResponse | CacheUsageHint
)
async def clear_language_cache(
    language: str,
    older_than_days: Optional[int] = Query(default=None, alias="olderThanDays", ge=0),
    cache: AudioCache = Depends(get_audio_cache),
) -> CacheEvictionResponse | CacheUsageHint:
    # Eviction always spans the whole store; the language only scopes the hint.
    return await _clear_cache(cache, language, older_than_days)


__all__ = ["router"]
