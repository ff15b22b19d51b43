"""Exceptions raised by the speech synthesis pipeline."""

from __future__ import annotations


class TTSError(RuntimeError):
    """Base exception for TTS-related errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class TextValidationError(TTSError):
    """Raised when request text is missing, malformed, or too long."""

    def __init__(self, message: str, *, max_length: int | None = None) -> None:
        super().__init__(message)
        self.max_length = max_length


class MarkupRejectedError(TTSError):
    """Raised when the synthesis backend refuses the SSML payload.

    Handled inside the synthesis adapter by retrying once in plain-text mode.
    """


class SynthesisError(TTSError):
    """Raised when the synthesis backend fails for a chunk."""


class InvalidSynthesisParameters(SynthesisError):
    """Raised when the backend rejects the request parameters."""


class ThrottlingError(SynthesisError):
    """Raised when the backend signals rate limiting."""


class CacheWriteError(TTSError):
    """Raised when the object store rejects a cache write.

    Never surfaced to clients; captured on `CacheWriteResult.error`.
    """


__all__ = [
    "CacheWriteError",
    "InvalidSynthesisParameters",
    "MarkupRejectedError",
    "SynthesisError",
    "TTSError",
    "TextValidationError",
    "ThrottlingError",
]
