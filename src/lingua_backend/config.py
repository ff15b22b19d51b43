"""Application configuration using environment variables."""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "production"] = Field(
        default="production",
        validation_alias=AliasChoices("ENVIRONMENT", "environment"),
    )

    # Amazon Polly
    aws_access_key_id: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("AWS_ACCESS_KEY_ID", "aws_access_key_id"),
    )
    aws_secret_access_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices(
            "AWS_SECRET_ACCESS_KEY", "aws_secret_access_key"
        ),
    )
    aws_region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("AWS_REGION", "aws_region"),
    )
    polly_sample_rate: str = Field(
        default="24000",
        validation_alias=AliasChoices("POLLY_SAMPLE_RATE", "polly_sample_rate"),
    )
    polly_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices(
            "POLLY_TIMEOUT_SECONDS", "polly_timeout_seconds"
        ),
    )

    # Synthesis pipeline
    tts_default_language: str = Field(
        default="de",
        validation_alias=AliasChoices(
            "TTS_DEFAULT_LANGUAGE", "tts_default_language"
        ),
    )
    tts_synthesis_concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        validation_alias=AliasChoices(
            "TTS_SYNTHESIS_CONCURRENCY", "tts_synthesis_concurrency"
        ),
    )
    tts_chunked_max_text_chars: int = Field(
        default=200_000,
        ge=1,
        validation_alias=AliasChoices(
            "TTS_CHUNKED_MAX_TEXT_CHARS", "tts_chunked_max_text_chars"
        ),
    )
    highlight_min_match_chars: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices(
            "HIGHLIGHT_MIN_MATCH_CHARS", "highlight_min_match_chars"
        ),
    )

    # Audio cache (Google Cloud Storage)
    gcs_bucket_name: str = Field(
        default="ebook-audio",
        validation_alias=AliasChoices("GCS_BUCKET_NAME", "gcs_bucket_name"),
    )
    gcp_project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GCP_PROJECT_ID", "gcp_project_id"),
    )
    google_application_credentials: Path = Field(
        default_factory=lambda: Path("credentials/googlecloud/sa.json"),
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "google_application_credentials",
        ),
    )
    audio_cache_prefix: str = Field(
        default="",
        validation_alias=AliasChoices("AUDIO_CACHE_PREFIX", "audio_cache_prefix"),
    )
    audio_cache_signed_url_ttl_seconds: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_SIGNED_URL_TTL_SECONDS",
            "audio_cache_signed_url_ttl_seconds",
        ),
    )
    audio_cache_retention_days: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_RETENTION_DAYS", "audio_cache_retention_days"
        ),
    )
    audio_cache_stats_limit: int = Field(
        default=1000,
        ge=1,
        validation_alias=AliasChoices(
            "AUDIO_CACHE_STATS_LIMIT", "audio_cache_stats_limit"
        ),
    )

    # Supabase Auth (bearer token verification)
    supabase_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "supabase_url"),
    )
    supabase_anon_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "supabase_anon_key"),
    )
    auth_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("AUTH_TIMEOUT_SECONDS"),
    )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def audio_cache_signed_url_ttl(self) -> timedelta | None:
        if self.audio_cache_signed_url_ttl_seconds <= 0:
            return None
        return timedelta(seconds=self.audio_cache_signed_url_ttl_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
