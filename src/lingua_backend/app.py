"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers.tts import router as tts_router
from .services.audio_cache import AudioCache
from .services.auth import SupabaseAuthenticator
from .services.gcs import GCSObjectStore
from .services.tts.pipeline import SpeechPipeline, SpeechSynthesizer
from .services.tts.polly import PollySynthesizer

logger = logging.getLogger(__name__)

EVICTION_INTERVAL_SECONDS = 24 * 3600


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("lingua_backend").setLevel(log_level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)

    # AWS and HTTP clients are chatty below WARNING
    if log_level > logging.DEBUG:
        for name in ("boto3", "botocore", "urllib3", "httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.WARNING)


def create_app(
    *,
    synthesizer: SpeechSynthesizer | None = None,
    audio_cache: AudioCache | None = None,
) -> FastAPI:
    """Build the service.

    Polly credentials are validated here, so a misconfigured deployment fails
    at startup rather than on its first request. ``synthesizer`` and
    ``audio_cache`` replace the Polly and GCS backed defaults.
    """

    _configure_logging()

    settings = get_settings()

    if synthesizer is None:
        synthesizer = PollySynthesizer.from_settings(settings)
    if audio_cache is None:
        audio_cache = AudioCache(
            GCSObjectStore.from_settings(settings),
            signed_url_ttl=settings.audio_cache_signed_url_ttl,
            stats_limit=settings.audio_cache_stats_limit,
        )

    pipeline = SpeechPipeline(
        synthesizer,
        audio_cache,
        default_language=settings.tts_default_language,
        concurrency=settings.tts_synthesis_concurrency,
        chunked_max_text_chars=settings.tts_chunked_max_text_chars,
        highlight_min_match_chars=settings.highlight_min_match_chars,
    )
    authenticator = SupabaseAuthenticator.from_settings(settings)
    if authenticator is None:
        logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not set; TTS routes will answer 503")

    retention_days = settings.audio_cache_retention_days
    eviction_task: asyncio.Task | None = None

    async def _evict_once() -> None:
        result = await audio_cache.clear_old_cache(retention_days)
        if result.error:
            logger.warning("Audio cache eviction failed: %s", result.error)

    async def _eviction_loop() -> None:
        while True:
            try:
                await _evict_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Audio cache eviction run failed: %s", exc)
            await asyncio.sleep(EVICTION_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal eviction_task
        if retention_days > 0 and audio_cache.enabled:
            eviction_task = asyncio.create_task(_eviction_loop())
        try:
            yield
        finally:
            if eviction_task is not None:
                eviction_task.cancel()
                with suppress(asyncio.CancelledError):
                    await eviction_task

    app = FastAPI(
        title="Lingua TTS Backend",
        version="0.1.0",
        description="Chunked Amazon Polly synthesis with a content-addressed audio cache.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.audio_cache = audio_cache
    app.state.speech_pipeline = pipeline
    app.state.authenticator = authenticator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(tts_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {
            "status": "ok",
            "cache": "enabled" if audio_cache.enabled else "degraded",
        }

    return app


__all__ = ["create_app"]
