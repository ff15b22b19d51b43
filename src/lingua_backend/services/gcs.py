"""Google Cloud Storage bucket wrapper used by the audio cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from google.api_core.exceptions import NotFound, PreconditionFailed
from google.cloud import storage
from google.oauth2 import service_account

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


class ObjectExistsError(RuntimeError):
    """Raised when a write-once upload targets an existing object."""


@dataclass(frozen=True)
class StoredObject:
    name: str
    size: int
    created: datetime | None


def _load_credentials(settings: "Settings") -> service_account.Credentials | None:
    credentials_path: Path | None = getattr(
        settings, "google_application_credentials", None
    )
    if credentials_path is None:
        return None

    try:
        resolved_path = Path(credentials_path).expanduser().resolve()
        if not resolved_path.exists():
            return None
        return service_account.Credentials.from_service_account_file(str(resolved_path))
    except (FileNotFoundError, OSError, ValueError) as e:
        logger.debug("Could not load GCS credentials from %s: %s", credentials_path, e)
        return None


class GCSObjectStore:
    """Thin, synchronous view over one bucket, optionally scoped to a prefix.

    Names passed to and returned from this class are relative to the prefix.
    """

    def __init__(self, bucket: storage.Bucket, *, prefix: str = "") -> None:
        self._bucket = bucket
        self._prefix = prefix.strip("/")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GCSObjectStore | None":
        """Build a store from settings, or ``None`` when credentials are missing."""

        credentials = _load_credentials(settings)
        if credentials is None:
            return None
        client = storage.Client(
            project=settings.gcp_project_id or credentials.project_id,
            credentials=credentials,
        )
        return cls(
            client.bucket(settings.gcs_bucket_name),
            prefix=settings.audio_cache_prefix,
        )

    def _blob_name(self, name: str) -> str:
        name = name.lstrip("/")
        return f"{self._prefix}/{name}" if self._prefix else name

    def _relative_name(self, blob_name: str) -> str:
        if self._prefix and blob_name.startswith(f"{self._prefix}/"):
            return blob_name[len(self._prefix) + 1 :]
        return blob_name

    def exists(self, name: str) -> bool:
        return self._bucket.blob(self._blob_name(name)).exists()

    def upload_bytes(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        overwrite: bool = False,
        cache_control: str | None = None,
    ) -> None:
        """Upload raw bytes; without ``overwrite`` the object must not exist yet."""

        blob = self._bucket.blob(self._blob_name(name))
        if cache_control:
            blob.cache_control = cache_control
        try:
            if overwrite:
                blob.upload_from_string(data, content_type=content_type)
            else:
                # Atomic create: prevent overwriting an existing object
                blob.upload_from_string(
                    data,
                    content_type=content_type,
                    if_generation_match=0,
                )
        except PreconditionFailed as exc:
            raise ObjectExistsError(name) from exc

    def download_bytes(self, name: str) -> bytes | None:
        try:
            return self._bucket.blob(self._blob_name(name)).download_as_bytes()
        except NotFound:
            return None

    def list_objects(
        self, prefix: str = "", *, max_results: int | None = None
    ) -> list[StoredObject]:
        blob_prefix = self._blob_name(prefix) if prefix else (
            f"{self._prefix}/" if self._prefix else None
        )
        blobs = self._bucket.list_blobs(prefix=blob_prefix, max_results=max_results)
        return [
            StoredObject(
                name=self._relative_name(blob.name),
                size=int(blob.size or 0),
                created=blob.time_created,
            )
            for blob in blobs
        ]

    def delete(self, name: str) -> bool:
        """Delete an object; returns ``False`` when it was already gone."""

        try:
            self._bucket.blob(self._blob_name(name)).delete()
        except NotFound:
            return False
        return True

    def url_for(self, name: str, *, expires_in: timedelta | None = None) -> str:
        """Public URL, or a V4 signed GET URL when ``expires_in`` is given."""

        blob = self._bucket.blob(self._blob_name(name))
        if expires_in is None:
            return blob.public_url
        return blob.generate_signed_url(
            version="v4",
            expiration=expires_in,
            method="GET",
        )


__all__ = ["GCSObjectStore", "ObjectExistsError", "StoredObject"]
