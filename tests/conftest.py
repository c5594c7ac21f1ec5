"""
Shared fixtures.

Everything here is real code wired with in-memory or mock collaborators:
the mock command runner stands in for ffprobe/ffmpeg, the mock object
store for S3. Staged files go to a per-test temp directory so tests can
assert nothing was left behind.
"""

from pathlib import Path
from typing import Optional

import pytest

from tubely.core.media.models import MediaKind, UploadRequest, VideoRecord
from tubely.core.media.pipeline import PipelineConfig, UploadPipeline
from tubely.infrastructure.records.store import InMemoryRecordStore
from tubely.infrastructure.storage.client import MockObjectStore
from tubely.infrastructure.storage.staging import StagingStore
from tubely.infrastructure.storage.urls import SignedUrlPolicy
from tubely.infrastructure.video.prober import MediaProber
from tubely.infrastructure.video.remuxer import StreamRemuxer
from tubely.infrastructure.video.runner import MockCommandRunner

OWNER_ID = "user-1"


class FakeUploadStream:
    """Async byte stream with the same read() shape as UploadFile."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


class BrokenUploadStream:
    """Delivers one chunk, then fails like a dropped client connection."""

    def __init__(self, first_chunk: bytes = b"partial") -> None:
        self._first_chunk = first_chunk
        self._sent = False

    async def read(self, size: int = -1) -> bytes:
        if not self._sent:
            self._sent = True
            return self._first_chunk
        raise ConnectionResetError("client went away")


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def runner() -> MockCommandRunner:
    return MockCommandRunner()


@pytest.fixture
def object_store() -> MockObjectStore:
    return MockObjectStore(bucket_name="tubely-test")


@pytest.fixture
def records() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def record(records: InMemoryRecordStore) -> VideoRecord:
    return records.create_record(OWNER_ID, "Boat day", "Filmed on a phone")


@pytest.fixture
def make_pipeline(staging_dir, runner, object_store, records):
    """Build an UploadPipeline, replacing any collaborator a test cares about."""

    def _make(
        runner=runner,
        object_store=object_store,
        url_policy=None,
        config: Optional[PipelineConfig] = None,
    ) -> UploadPipeline:
        return UploadPipeline(
            config=config or PipelineConfig(),
            stager=StagingStore(staging_dir),
            prober=MediaProber(runner),
            remuxer=StreamRemuxer(runner),
            object_store=object_store,
            url_policy=url_policy or SignedUrlPolicy(object_store),
            records=records,
        )

    return _make


@pytest.fixture
def make_request(record: VideoRecord):
    def _make(
        data: bytes = b"\x00\x00\x00\x18ftypmp42 fake video body",
        content_type: str = "video/mp4",
        requester_id: str = OWNER_ID,
        kind: MediaKind = MediaKind.VIDEO,
        stream=None,
        max_bytes: int = 1 << 20,
    ) -> UploadRequest:
        return UploadRequest(
            record_id=record.id,
            requester_id=requester_id,
            content_type=content_type,
            stream=stream or FakeUploadStream(data),
            max_bytes=max_bytes,
            kind=kind,
        )

    return _make


@pytest.fixture
def fake_stream():
    """Factory for in-memory upload streams."""
    return FakeUploadStream


@pytest.fixture
def broken_stream() -> BrokenUploadStream:
    return BrokenUploadStream()
