from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from conftest import InMemoryObjectStore

from lingua_backend.services.audio_cache import (
    AUDIO_CONTENT_TYPE,
    CACHE_CONTROL,
    AudioCache,
    cache_key,
    speech_marks_key,
)
from lingua_backend.services.tts.stitcher import SpeechMark


def test_cache_key_is_md5_of_raw_text_under_language() -> None:
    # md5("hello")
    assert cache_key("hello", "en") == "en/5d41402abc4b2a76b9719d911017c592.mp3"


def test_cache_key_is_deterministic_and_text_sensitive() -> None:
    assert cache_key("Hallo!!", "de") == cache_key("Hallo!!", "de")
    # Normalization happens after keying, so cosmetic differences still miss.
    assert cache_key("Hallo!!", "de") != cache_key("Hallo!", "de")
    assert cache_key("Hallo", "de") != cache_key("Hallo", "tr")


def test_speech_marks_key_swaps_extension() -> None:
    assert speech_marks_key("de/abc.mp3") == "de/abc.json"


@pytest.mark.anyio
async def test_store_then_check_round_trip(store: InMemoryObjectStore) -> None:
    cache = AudioCache(store)
    key = cache_key("Hallo.", "de")

    write = await cache.store_audio(key, b"mp3")
    lookup = await cache.check_cache(key)

    assert write.success and not write.already_cached
    assert write.url == f"{store.base_url}/{key}"
    assert lookup.exists is True
    assert lookup.url == write.url
    assert store.objects[key]["content_type"] == AUDIO_CONTENT_TYPE
    assert store.objects[key]["cache_control"] == CACHE_CONTROL


@pytest.mark.anyio
async def test_second_write_is_treated_as_already_cached(store: InMemoryObjectStore) -> None:
    cache = AudioCache(store)
    await cache.store_audio("de/x.mp3", b"first")

    write = await cache.store_audio("de/x.mp3", b"second")

    assert write.success is True
    assert write.already_cached is True
    assert store.objects["de/x.mp3"]["data"] == b"first"


@pytest.mark.anyio
async def test_speech_marks_round_trip_and_overwrite(store: InMemoryObjectStore) -> None:
    cache = AudioCache(store)
    await cache.store_speech_marks("de/x.mp3", [SpeechMark(0, "Alt.")])
    await cache.store_speech_marks("de/x.mp3", [SpeechMark(0, "Eins."), SpeechMark(900, "Zwei.")])

    lookup = await cache.get_speech_marks("de/x.mp3")

    assert lookup.success
    assert lookup.marks == [SpeechMark(0, "Eins."), SpeechMark(900, "Zwei.")]
    assert json.loads(store.objects["de/x.json"]["data"]) == [
        {"time": 0, "value": "Eins."},
        {"time": 900, "value": "Zwei."},
    ]


@pytest.mark.anyio
async def test_missing_sidecar_yields_empty_marks(store: InMemoryObjectStore) -> None:
    lookup = await AudioCache(store).get_speech_marks("de/none.mp3")
    assert lookup.success is False
    assert lookup.marks == []


@pytest.mark.anyio
async def test_corrupt_sidecar_yields_empty_marks(store: InMemoryObjectStore) -> None:
    store.put("de/bad.json", b"{not json")
    lookup = await AudioCache(store).get_speech_marks("de/bad.mp3")
    assert lookup.marks == []


@pytest.mark.anyio
async def test_unconfigured_cache_degrades_without_raising() -> None:
    cache = AudioCache(None)

    assert cache.enabled is False
    assert (await cache.check_cache("de/a.mp3")).exists is False
    write = await cache.store_audio("de/a.mp3", b"mp3")
    assert write.success is False and write.error
    assert (await cache.store_speech_marks("de/a.mp3", [])).success is False
    assert (await cache.get_speech_marks("de/a.mp3")).marks == []
    assert (await cache.delete_audio("de/a.mp3")).success is False
    stats = await cache.get_stats()
    assert (stats.file_count, stats.total_size, stats.files) == (0, 0, [])
    eviction = await cache.clear_old_cache(1)
    assert eviction.deleted_count == 0 and eviction.error
    with pytest.raises(RuntimeError, match="not configured"):
        cache._url_for("de/a.mp3")


@pytest.mark.anyio
async def test_unreachable_store_degrades_without_raising(store: InMemoryObjectStore) -> None:
    store.fail_reads = True
    store.fail_uploads = True
    cache = AudioCache(store)

    lookup = await cache.check_cache("de/a.mp3")
    write = await cache.store_audio("de/a.mp3", b"mp3")

    assert (lookup.exists, lookup.url) == (False, None)
    assert write.success is False
    assert "store unreachable" in (write.error or "")
    assert (await cache.get_speech_marks("de/a.mp3")).marks == []
    assert (await cache.get_stats("de")).file_count == 0
    assert (await cache.clear_old_cache(1)).error


@pytest.mark.anyio
async def test_delete_audio_removes_sidecar(store: InMemoryObjectStore) -> None:
    store.put("de/a.mp3", b"mp3")
    store.put("de/a.json", b"[]")

    result = await AudioCache(store).delete_audio("de/a.mp3")

    assert result.success
    assert store.objects == {}


@pytest.mark.anyio
async def test_get_stats_filters_by_language(store: InMemoryObjectStore) -> None:
    older = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2024, 2, 1, tzinfo=timezone.utc)
    store.put("de/a.mp3", b"12345", created=older)
    store.put("de/b.mp3", b"123", created=newer)
    store.put("tr/c.mp3", b"1", created=newer)

    stats = await AudioCache(store).get_stats("de")

    assert stats.file_count == 2
    assert stats.total_size == 8
    assert [info.name for info in stats.files] == ["de/b.mp3", "de/a.mp3"]
    assert stats.files[0].to_dict()["created"] == newer.isoformat()


@pytest.mark.anyio
async def test_get_stats_limit_keeps_newest_files(store: InMemoryObjectStore) -> None:
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)
    # The newest files sort last by name.
    for index in range(5):
        store.put(f"de/{index}.mp3", b"x", created=start + timedelta(days=index))

    stats = await AudioCache(store, stats_limit=3).get_stats()

    assert stats.file_count == 3
    assert [info.name for info in stats.files] == ["de/4.mp3", "de/3.mp3", "de/2.mp3"]


@pytest.mark.anyio
async def test_clear_old_cache_spans_all_languages(store: InMemoryObjectStore) -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    store.put("de/old.mp3", b"x", created=now - timedelta(days=40))
    store.put("de/old.json", b"[]", created=now - timedelta(days=40))
    store.put("tr/old.mp3", b"x", created=now - timedelta(days=31))
    store.put("de/new.mp3", b"x", created=now - timedelta(days=2))

    result = await AudioCache(store).clear_old_cache(30, now=now)

    assert result.deleted_count == 3
    assert result.error is None
    assert list(store.objects) == ["de/new.mp3"]


@pytest.mark.anyio
async def test_clear_old_cache_with_zero_days_deletes_everything_older_than_now(
    store: InMemoryObjectStore,
) -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    store.put("de/a.mp3", b"x", created=now - timedelta(seconds=1))

    result = await AudioCache(store).clear_old_cache(0, now=now)

    assert result.deleted_count == 1
