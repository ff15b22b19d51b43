from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import NotFound, PreconditionFailed

from lingua_backend.services.gcs import GCSObjectStore, ObjectExistsError


@pytest.fixture
def bucket() -> MagicMock:
    bucket = MagicMock()
    bucket.name = "ebook-audio"
    return bucket


def test_write_once_upload_uses_generation_precondition(bucket: MagicMock) -> None:
    store = GCSObjectStore(bucket, prefix="tts")

    store.upload_bytes(
        "de/abc.mp3",
        b"mp3",
        content_type="audio/mpeg",
        cache_control="public, max-age=60",
    )

    bucket.blob.assert_called_with("tts/de/abc.mp3")
    blob = bucket.blob.return_value
    blob.upload_from_string.assert_called_once_with(
        b"mp3", content_type="audio/mpeg", if_generation_match=0
    )
    assert blob.cache_control == "public, max-age=60"


def test_overwrite_upload_has_no_precondition(bucket: MagicMock) -> None:
    store = GCSObjectStore(bucket)

    store.upload_bytes("de/abc.json", b"[]", content_type="application/json", overwrite=True)

    bucket.blob.return_value.upload_from_string.assert_called_once_with(
        b"[]", content_type="application/json"
    )


def test_existing_object_raises_object_exists(bucket: MagicMock) -> None:
    bucket.blob.return_value.upload_from_string.side_effect = PreconditionFailed("exists")
    store = GCSObjectStore(bucket)

    with pytest.raises(ObjectExistsError):
        store.upload_bytes("de/abc.mp3", b"mp3", content_type="audio/mpeg")


def test_download_and_delete_treat_missing_objects_softly(bucket: MagicMock) -> None:
    blob = bucket.blob.return_value
    blob.download_as_bytes.side_effect = NotFound("gone")
    blob.delete.side_effect = NotFound("gone")
    store = GCSObjectStore(bucket)

    assert store.download_bytes("de/abc.json") is None
    assert store.delete("de/abc.mp3") is False


def test_list_objects_strips_prefix(bucket: MagicMock) -> None:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    bucket.list_blobs.return_value = [
        SimpleNamespace(name="tts/de/a.mp3", size=10, time_created=created),
        SimpleNamespace(name="tts/de/a.json", size=None, time_created=None),
    ]
    store = GCSObjectStore(bucket, prefix="/tts/")

    objects = store.list_objects("de/", max_results=5)

    bucket.list_blobs.assert_called_once_with(prefix="tts/de/", max_results=5)
    assert [(obj.name, obj.size, obj.created) for obj in objects] == [
        ("de/a.mp3", 10, created),
        ("de/a.json", 0, None),
    ]


def test_list_objects_without_prefix_lists_store_root(bucket: MagicMock) -> None:
    bucket.list_blobs.return_value = []
    GCSObjectStore(bucket).list_objects()
    bucket.list_blobs.assert_called_once_with(prefix=None, max_results=None)


def test_url_for_public_and_signed(bucket: MagicMock) -> None:
    blob = bucket.blob.return_value
    blob.public_url = "https://storage.googleapis.com/ebook-audio/de/a.mp3"
    blob.generate_signed_url.return_value = "https://signed.example/de/a.mp3"
    store = GCSObjectStore(bucket)

    assert store.url_for("de/a.mp3") == blob.public_url
    assert store.url_for("de/a.mp3", expires_in=timedelta(hours=1)) == (
        "https://signed.example/de/a.mp3"
    )
    blob.generate_signed_url.assert_called_once_with(
        version="v4", expiration=timedelta(hours=1), method="GET"
    )


def test_from_settings_without_credentials_returns_none(tmp_path) -> None:
    settings = SimpleNamespace(
        google_application_credentials=tmp_path / "missing.json",
        gcp_project_id=None,
        gcs_bucket_name="ebook-audio",
        audio_cache_prefix="",
    )
    assert GCSObjectStore.from_settings(settings) is None  # type: ignore[arg-type]
