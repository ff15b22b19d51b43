import pathlib
import sys
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from lingua_backend.services.gcs import ObjectExistsError, StoredObject  # noqa: E402


class FakeStream:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self.closed = False

    def read(self) -> bytes:
        return self._payload

    def close(self) -> None:
        self.closed = True


def client_error(code: str, message: str = "boom") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": message}}, "SynthesizeSpeech"
    )


class FakePollyClient:
    """Scripted stand-in for ``boto3.client("polly")``.

    ``responses`` is consumed in call order; each entry is either bytes for
    the AudioStream or an exception to raise. When it runs out, audio calls
    return ``b"AUDIO:" + text`` and marks calls return one sentence mark.
    """

    def __init__(self, responses: list | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict] = []

    def synthesize_speech(self, **params):
        self.calls.append(params)
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return {"AudioStream": FakeStream(item)}
        if params["OutputFormat"] == "json":
            return {
                "AudioStream": FakeStream(
                    b'{"time":0,"type":"sentence","start":0,"end":5,"value":"Hallo."}\n'
                )
            }
        return {"AudioStream": FakeStream(b"AUDIO:" + params["Text"].encode("utf-8"))}


class InMemoryObjectStore:
    """Object store double keyed by object name."""

    def __init__(self, *, base_url: str = "https://storage.example.com/audio") -> None:
        self.base_url = base_url
        self.objects: dict[str, dict] = {}
        self.fail_uploads = False
        self.fail_reads = False

    def put(self, name: str, data: bytes, *, created: datetime | None = None) -> None:
        self.objects[name] = {
            "data": data,
            "created": created or datetime.now(timezone.utc),
            "content_type": None,
        }

    def exists(self, name: str) -> bool:
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        return name in self.objects

    def upload_bytes(
        self,
        name: str,
        data: bytes,
        *,
        content_type: str,
        overwrite: bool = False,
        cache_control: str | None = None,
    ) -> None:
        if self.fail_uploads:
            raise ConnectionError("store unreachable")
        if not overwrite and name in self.objects:
            raise ObjectExistsError(name)
        self.objects[name] = {
            "data": data,
            "created": datetime.now(timezone.utc),
            "content_type": content_type,
            "cache_control": cache_control,
        }

    def download_bytes(self, name: str) -> bytes | None:
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        entry = self.objects.get(name)
        return entry["data"] if entry else None

    def list_objects(self, prefix: str = "", *, max_results: int | None = None):
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        found = [
            StoredObject(name=name, size=len(entry["data"]), created=entry["created"])
            for name, entry in sorted(self.objects.items())
            if name.startswith(prefix)
        ]
        return found[:max_results] if max_results is not None else found

    def delete(self, name: str) -> bool:
        return self.objects.pop(name, None) is not None

    def url_for(self, name: str, *, expires_in: timedelta | None = None) -> str:
        return f"{self.base_url}/{name}"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def polly_client() -> FakePollyClient:
    return FakePollyClient()
