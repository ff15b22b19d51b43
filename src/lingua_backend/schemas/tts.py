"""Request and response payloads for the TTS API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SynthesizeRequest(BaseModel):
    """Body of ``POST /api/tts/synthesize``.

    ``text`` is validated by the pipeline rather than by pydantic so that a
    missing or non-string value is answered with 400 instead of 422.
    """

    model_config = ConfigDict(extra="ignore")

    text: Any = None
    language: Optional[str] = None
    voiceId: Optional[str] = None


class SynthesizeChunkedRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Any = None
    language: Optional[str] = None


class SpeechMarkPayload(BaseModel):
    time: int
    value: str


class SynthesizeResponse(BaseModel):
    """Uniform envelope: exactly one of ``audioUrl``/``inlineAudioBase64`` is set."""

    audioUrl: Optional[str] = None
    inlineAudioBase64: Optional[str] = None
    mimeType: str = "audio/mpeg"
    cached: bool
    cacheKey: str
    size: Optional[int] = None


class SynthesizeChunkedResponse(SynthesizeResponse):
    chunks: Optional[int] = None
    speechMarks: list[SpeechMarkPayload] = Field(default_factory=list)
    sentences: list[str] = Field(default_factory=list)
    sentenceTimes: list[Optional[int]] = Field(default_factory=list)


class CachedFilePayload(BaseModel):
    name: str
    size: int
    created: Optional[str] = None


class CacheStatsResponse(BaseModel):
    fileCount: int
    totalSize: int
    totalSizeMB: str
    files: list[CachedFilePayload] = Field(default_factory=list)


class CacheEvictionResponse(BaseModel):
    deletedCount: int
    message: str


class CacheUsageHint(BaseModel):
    message: str
    currentFiles: int


__all__ = [
    "CacheEvictionResponse",
    "CacheStatsResponse",
    "CacheUsageHint",
    "CachedFilePayload",
    "SpeechMarkPayload",
    "SynthesizeChunkedRequest",
    "SynthesizeChunkedResponse",
    "SynthesizeRequest",
    "SynthesizeResponse",
]
