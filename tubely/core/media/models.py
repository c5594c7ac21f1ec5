"""
Domain models for the upload pipeline.

Nothing in here knows about FastAPI, boto3 or subprocesses. These are the
values that flow between pipeline stages, plus the video record the
pipeline writes its result back to.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Protocol
from uuid import UUID, uuid4

from .errors import InvalidObjectRef

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaKind(Enum):
    """What an upload is for. Each kind has its own content-type allow-list."""
    VIDEO = "video"
    THUMBNAIL = "thumbnail"

    @property
    def allowed_content_types(self) -> dict[str, str]:
        """Allowed media types mapped to the file extension stored for them."""
        if self is MediaKind.VIDEO:
            return {"video/mp4": "mp4"}
        return {"image/jpeg": "jpg", "image/png": "png"}


def parse_media_type(content_type: Optional[str]) -> str:
    """
    Reduce a Content-Type header to its bare media type.

    "Video/MP4; codecs=avc1" -> "video/mp4". Parameters are dropped because
    the allow-list only cares about type/subtype.
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


class OrientationCategory(Enum):
    """Storage category derived from a video's aspect ratio."""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"

    @property
    def prefix(self) -> str:
        return f"{self.value}/"


@dataclass(frozen=True)
class ProbeResult:
    """Pixel dimensions reported by ffprobe."""
    width: int
    height: int

    @property
    def resolution_display(self) -> str:
        return f"{self.width}x{self.height}"


def build_storage_key(prefix: str, record_id: UUID, extension: str) -> str:
    """Object key for an artifact: <prefix><record id>.<extension>."""
    return f"{prefix}{record_id}.{extension}"


@dataclass(frozen=True)
class StoredObjectRef:
    """
    Where an artifact lives in the object store.

    This is what gets persisted when URLs are signed on read. The
    serialized form is "bucket,key".
    """
    bucket: str
    key: str

    def serialize(self) -> str:
        return f"{self.bucket},{self.key}"

    @classmethod
    def parse(cls, value: str) -> "StoredObjectRef":
        parts = value.split(",")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise InvalidObjectRef(f"Invalid stored object reference: {value}")
        return cls(bucket=parts[0], key=parts[1])


@dataclass
class StagedFile:
    """
    A local scratch copy of one stage's output.

    Owned files are deleted by discard(); files we merely point at are
    left alone. open() always starts from byte 0, so a downstream stage can
    re-read the file as often as it needs.
    """
    path: Path
    owned: bool = True
    size_bytes: int = 0

    def open(self) -> BinaryIO:
        return self.path.open("rb")

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def discard(self) -> None:
        """Delete the scratch file. Safe to call more than once."""
        if not self.owned:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            # cleanup must not mask the failure that triggered it
            logger.error(
                "Failed to remove staged file",
                extra={"path": str(self.path), "error": str(e)}
            )


class AsyncReadable(Protocol):
    """Anything with an async read(size), e.g. FastAPI's UploadFile."""

    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class UploadRequest:
    """
    One inbound upload.

    The stream may only be consumed once, which is why the pipeline checks
    the content type and ownership before touching it.
    """
    record_id: UUID
    requester_id: str
    content_type: str
    stream: AsyncReadable
    max_bytes: int
    kind: MediaKind = MediaKind.VIDEO

    @property
    def media_type(self) -> str:
        return parse_media_type(self.content_type)


@dataclass
class VideoRecord:
    """
    Metadata for one video, as held by the record store.

    video_url holds either a permanent URL or a serialized StoredObjectRef,
    depending on the configured URL policy.
    """
    user_id: str
    id: UUID = field(default_factory=uuid4)
    title: str = ""
    description: str = ""
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def copy(self, **changes) -> "VideoRecord":
        return replace(self, **changes)


class PipelineState(Enum):
    """States of one upload run. FAILED absorbs from any step."""
    RECEIVED = "received"
    VALIDATED = "validated"
    STAGED = "staged"
    PROBED = "probed"
    REMUXED = "remuxed"
    CLASSIFIED = "classified"
    UPLOADED = "uploaded"
    RESOLVED = "resolved"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineRun:
    """
    Bookkeeping for a single pipeline run.

    Tracks where the run got to and every scratch file it created, so the
    orchestrator can clean up regardless of where it stopped.
    """
    id: UUID = field(default_factory=uuid4)
    state: PipelineState = PipelineState.RECEIVED
    history: list[PipelineState] = field(
        default_factory=lambda: [PipelineState.RECEIVED]
    )
    failure: Optional[Exception] = None
    staged_files: list[StagedFile] = field(default_factory=list)

    def advance(self, state: PipelineState) -> None:
        if self.state in (PipelineState.FAILED, PipelineState.COMPLETED):
            raise RuntimeError(f"Run {self.id} already finished as {self.state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: Exception) -> None:
        self.failure = error
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)

    def track(self, staged: StagedFile) -> StagedFile:
        self.staged_files.append(staged)
        return staged

    def cleanup(self) -> int:
        """Discard every staged file. Returns how many were tracked."""
        for staged in self.staged_files:
            staged.discard()
        return len(self.staged_files)


@dataclass
class UploadResult:
    """What a completed run hands back to the caller."""
    record: VideoRecord
    object_ref: StoredObjectRef
    url: str
