"""Amazon Polly adapter with a single plain-text fallback on SSML rejection."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    InvalidSynthesisParameters,
    MarkupRejectedError,
    SynthesisError,
    ThrottlingError,
    TTSError,
)
from .ssml import build_ssml
from .voices import VoiceSelection

if TYPE_CHECKING:
    from ...config import Settings

logger = logging.getLogger(__name__)

_MARKUP_REJECTED_CODES = frozenset({"InvalidSsmlException"})
_THROTTLING_CODES = frozenset({"ThrottlingException", "TooManyRequestsException"})
_INVALID_PARAMETER_CODES = frozenset(
    {
        "InvalidParameterException",
        "InvalidParameterValue",
        "InvalidSampleRateException",
        "EngineNotSupportedException",
        "LanguageNotSupportedException",
        "TextLengthExceededException",
    }
)


class SynthesisOutcome(str, Enum):
    SSML = "ssml"
    PLAIN_TEXT_FALLBACK = "plain_text_fallback"
    FAILED = "failed"


@dataclass(frozen=True)
class SynthesisAttempt:
    """Tagged result of one audio or speech-marks request."""

    outcome: SynthesisOutcome
    payload: bytes | None = None
    error: TTSError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not SynthesisOutcome.FAILED

    def unwrap(self) -> bytes:
        if self.outcome is SynthesisOutcome.FAILED or self.payload is None:
            raise self.error or SynthesisError("Speech synthesis failed")
        return self.payload


class PollySynthesizer:
    """Synthesize audio bytes or sentence speech marks for one chunk of text.

    Every call first sends the chunk as SSML. If Polly rejects the markup the
    request is repeated once with the raw chunk as plain text; the fallback is
    reported through ``SynthesisOutcome.PLAIN_TEXT_FALLBACK`` rather than an
    exception. Any other failure yields ``SynthesisOutcome.FAILED``.
    """

    def __init__(
        self,
        client: Any,
        *,
        sample_rate: str = "24000",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._sample_rate = sample_rate
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: "Settings") -> "PollySynthesizer":
        access_key = settings.aws_access_key_id.get_secret_value()
        secret_key = settings.aws_secret_access_key.get_secret_value()
        if not access_key or not secret_key:
            raise RuntimeError(
                "AWS credentials not configured. Set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY in the environment or .env file."
            )

        client = boto3.client(
            "polly",
            region_name=settings.aws_region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(
                connect_timeout=settings.polly_timeout_seconds,
                read_timeout=settings.polly_timeout_seconds,
                # Throttling is reported to the caller instead of retried here.
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )
        logger.info("Polly client initialized for region %s", settings.aws_region)
        return cls(
            client,
            sample_rate=settings.polly_sample_rate,
            timeout_seconds=settings.polly_timeout_seconds,
        )

    async def synthesize(
        self,
        text: str,
        selection: VoiceSelection,
        *,
        want_marks: bool = False,
    ) -> SynthesisAttempt:
        """Request audio (or sentence marks when ``want_marks``) for ``text``."""

        try:
            payload = await self._request(
                build_ssml(text), "ssml", selection, want_marks=want_marks
            )
            return SynthesisAttempt(SynthesisOutcome.SSML, payload=payload)
        except MarkupRejectedError as exc:
            logger.warning(
                "Invalid SSML for %s, retrying with plain text: %s",
                "speech marks" if want_marks else "audio",
                exc,
            )
        except TTSError as exc:
            return SynthesisAttempt(SynthesisOutcome.FAILED, error=exc)

        try:
            payload = await self._request(
                text, "text", selection, want_marks=want_marks
            )
        except MarkupRejectedError as exc:
            return SynthesisAttempt(
                SynthesisOutcome.FAILED,
                error=SynthesisError(f"Plain-text fallback rejected: {exc}", exc),
            )
        except TTSError as exc:
            return SynthesisAttempt(SynthesisOutcome.FAILED, error=exc)
        return SynthesisAttempt(SynthesisOutcome.PLAIN_TEXT_FALLBACK, payload=payload)

    async def _request(
        self,
        text: str,
        text_type: str,
        selection: VoiceSelection,
        *,
        want_marks: bool,
    ) -> bytes:
        params: dict[str, Any] = {
            "Text": text,
            "TextType": text_type,
            "VoiceId": selection.voice,
            "Engine": selection.engine,
        }
        if want_marks:
            params["OutputFormat"] = "json"
            params["SpeechMarkTypes"] = ["sentence"]
        else:
            params["OutputFormat"] = "mp3"
            params["SampleRate"] = self._sample_rate

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._synthesize_sync, params),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise SynthesisError(
                f"Polly request timed out after {self._timeout:g}s", exc
            ) from exc
        except ClientError as exc:
            raise _translate_client_error(exc) from exc
        except BotoCoreError as exc:
            raise SynthesisError(f"Polly request failed: {exc}", exc) from exc

    def _synthesize_sync(self, params: dict[str, Any]) -> bytes:
        response = self._client.synthesize_speech(**params)
        stream = response.get("AudioStream")
        if stream is None:
            raise SynthesisError("Polly response missing AudioStream")
        try:
            return stream.read()
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()


def _translate_client_error(exc: ClientError) -> TTSError:
    error = exc.response.get("Error", {}) if hasattr(exc, "response") else {}
    code = error.get("Code") or ""
    message = error.get("Message") or str(exc)

    if code in _MARKUP_REJECTED_CODES:
        return MarkupRejectedError(message, exc)
    if code in _THROTTLING_CODES:
        return ThrottlingError(f"Rate limit exceeded: {message}", exc)
    if code in _INVALID_PARAMETER_CODES:
        return InvalidSynthesisParameters(message, exc)
    return SynthesisError(f"Polly {code or 'error'}: {message}", exc)


__all__ = ["PollySynthesizer", "SynthesisAttempt", "SynthesisOutcome"]
