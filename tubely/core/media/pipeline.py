"""
The upload pipeline.

One UploadPipeline call handles one upload from start to finish:

    received -> validated -> staged -> probed -> remuxed -> classified
             -> uploaded -> resolved -> completed

Any failure moves the run to FAILED and stops it. Whatever happens, every
scratch file the run created is deleted before the call returns.

The pipeline only knows its collaborators through the protocols below, so
it can be driven with fakes in tests and has no idea whether it is talking
to S3, ffmpeg or an in-memory stand-in.
"""

import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Protocol
from uuid import UUID

from .errors import IOFault, NotOwner, PipelineError, UnsupportedMediaType
from .models import (
    AsyncReadable,
    MediaKind,
    PipelineRun,
    PipelineState,
    ProbeResult,
    StagedFile,
    StoredObjectRef,
    UploadRequest,
    UploadResult,
    VideoRecord,
    build_storage_key,
)
from .orientation import classify_orientation

logger = logging.getLogger(__name__)

THUMBNAIL_PREFIX = "thumbnails/"


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------

class Stager(Protocol):
    async def stage(self, source: AsyncReadable, max_bytes: int, suffix: str = ".mp4") -> StagedFile:
        ...


class Prober(Protocol):
    async def probe(self, staged: StagedFile) -> ProbeResult:
        ...


class Remuxer(Protocol):
    async def remux(self, source: StagedFile) -> StagedFile:
        ...


class ObjectUploader(Protocol):
    async def upload(self, source: BinaryIO, key: str, content_type: str) -> StoredObjectRef:
        ...


class UrlResolver(Protocol):
    def reference_for(self, ref: StoredObjectRef) -> str:
        ...

    async def resolve_record(self, record: VideoRecord) -> VideoRecord:
        ...


class RecordStore(Protocol):
    """Read/write access to video records."""

    def create_record(self, user_id: str, title: str, description: str = "") -> VideoRecord:
        ...

    def get_record(self, record_id: UUID) -> VideoRecord:
        """Raises RecordNotFound when the id is unknown."""
        ...

    def update_record(self, record: VideoRecord) -> VideoRecord:
        """Replace the stored record. Last write wins."""
        ...


@dataclass
class PipelineConfig:
    """
    Limits and allow-lists for one pipeline instance.

    Passed in explicitly rather than read from settings so tests can run
    several differently-configured pipelines side by side.
    """
    max_upload_bytes: int = 1 << 30  # 1 GiB
    video_content_types: dict[str, str] = field(
        default_factory=lambda: dict(MediaKind.VIDEO.allowed_content_types)
    )
    thumbnail_content_types: dict[str, str] = field(
        default_factory=lambda: dict(MediaKind.THUMBNAIL.allowed_content_types)
    )

    def allowed_for(self, kind: MediaKind) -> dict[str, str]:
        if kind is MediaKind.VIDEO:
            return self.video_content_types
        return self.thumbnail_content_types


class UploadPipeline:
    """Sequences staging, probing, remuxing, upload and URL resolution."""

    def __init__(
        self,
        config: PipelineConfig,
        stager: Stager,
        prober: Prober,
        remuxer: Remuxer,
        object_store: ObjectUploader,
        url_policy: UrlResolver,
        records: RecordStore,
    ) -> None:
        self._config = config
        self._stager = stager
        self._prober = prober
        self._remuxer = remuxer
        self._store = object_store
        self._urls = url_policy
        self._records = records

    @property
    def config(self) -> PipelineConfig:
        return self._config

    async def process_video(
        self,
        request: UploadRequest,
        run: Optional[PipelineRun] = None,
    ) -> UploadResult:
        """
        Take one video upload all the way to a caller-visible URL.

        Pass `run` to observe the state machine from outside (tests, logs);
        a fresh one is created otherwise.
        """
        run = run or PipelineRun()
        self._log_start(run, request)

        try:
            record, extension = self._validate(request, run, MediaKind.VIDEO)

            source = run.track(await self._stager.stage(
                request.stream, self._byte_limit(request), suffix=f".{extension}"
            ))
            self._advance(run, PipelineState.STAGED)

            # probe only feeds classification; remux works from the same input
            probe = await self._prober.probe(source)
            self._advance(run, PipelineState.PROBED)

            remuxed = run.track(await self._remuxer.remux(source))
            self._advance(run, PipelineState.REMUXED)

            category = classify_orientation(probe.width, probe.height)
            key = build_storage_key(category.prefix, record.id, extension)
            self._advance(run, PipelineState.CLASSIFIED)

            logger.info(
                "Classified video",
                extra={
                    "run_id": str(run.id),
                    "record_id": str(record.id),
                    "resolution": probe.resolution_display,
                    "category": category.value,
                    "key": key,
                }
            )

            result = await self._upload_and_resolve(
                run, record, remuxed, key, request.media_type, field_name="video_url"
            )
        except Exception as e:
            self._fail(run, request, e)
            raise
        finally:
            removed = run.cleanup()
            logger.debug(
                "Cleaned up staged files",
                extra={"run_id": str(run.id), "count": removed}
            )

        return result

    async def process_thumbnail(
        self,
        request: UploadRequest,
        run: Optional[PipelineRun] = None,
    ) -> UploadResult:
        """
        Store a thumbnail image for a video.

        Same validation, staging and cleanup as videos, but images go
        straight to the store under thumbnails/ with no probing or remuxing.
        """
        run = run or PipelineRun()
        self._log_start(run, request)

        try:
            record, extension = self._validate(request, run, MediaKind.THUMBNAIL)

            staged = run.track(await self._stager.stage(
                request.stream, self._byte_limit(request), suffix=f".{extension}"
            ))
            self._advance(run, PipelineState.STAGED)

            key = build_storage_key(THUMBNAIL_PREFIX, record.id, extension)
            result = await self._upload_and_resolve(
                run, record, staged, key, request.media_type, field_name="thumbnail_url"
            )
        except Exception as e:
            self._fail(run, request, e)
            raise
        finally:
            run.cleanup()

        return result

    # -----------------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------------

    def _validate(
        self, request: UploadRequest, run: PipelineRun, kind: MediaKind
    ) -> tuple[VideoRecord, str]:
        """
        Content type and ownership checks. Runs before the stream is read,
        so a rejected request never creates a scratch file.

        The allow-list comes from `kind`, the operation being run, never
        from the request.
        """
        allowed = self._config.allowed_for(kind)
        extension = allowed.get(request.media_type)
        if extension is None:
            raise UnsupportedMediaType(
                f"Media type not allowed. Only {', '.join(sorted(allowed))} supported"
            )

        record = self._records.get_record(request.record_id)
        if record.user_id != request.requester_id:
            raise NotOwner("You don't own this video")

        self._advance(run, PipelineState.VALIDATED)
        return record, extension

    async def _upload_and_resolve(
        self,
        run: PipelineRun,
        record: VideoRecord,
        artifact: StagedFile,
        key: str,
        content_type: str,
        field_name: str,
    ) -> UploadResult:
        try:
            with artifact.open() as body:
                ref = await self._store.upload(body, key, content_type)
        except OSError as e:
            raise IOFault("Failed to open processed file", diagnostics=str(e))
        self._advance(run, PipelineState.UPLOADED)

        candidate = record.copy(**{field_name: self._urls.reference_for(ref)})
        resolved = await self._urls.resolve_record(candidate)
        self._advance(run, PipelineState.RESOLVED)

        # the record only changes once upload and resolution have both succeeded
        stored = self._records.update_record(candidate)

        result = UploadResult(
            record=resolved.copy(updated_at=stored.updated_at),
            object_ref=ref,
            url=getattr(resolved, field_name),
        )
        self._advance(run, PipelineState.COMPLETED)

        logger.info(
            "Upload completed",
            extra={
                "run_id": str(run.id),
                "record_id": str(record.id),
                "bucket": ref.bucket,
                "key": ref.key,
            }
        )

        return result

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _byte_limit(self, request: UploadRequest) -> int:
        return min(request.max_bytes, self._config.max_upload_bytes)

    def _advance(self, run: PipelineRun, state: PipelineState) -> None:
        run.advance(state)
        logger.debug(
            "Pipeline state changed",
            extra={"run_id": str(run.id), "state": state.value}
        )

    def _log_start(self, run: PipelineRun, request: UploadRequest) -> None:
        logger.info(
            "Upload started",
            extra={
                "run_id": str(run.id),
                "record_id": str(request.record_id),
                "user_id": request.requester_id,
                "kind": request.kind.value,
                "content_type": request.content_type,
            }
        )

    def _fail(self, run: PipelineRun, request: UploadRequest, error: Exception) -> None:
        failed_at = run.state
        run.fail(error)

        context = {
            "run_id": str(run.id),
            "record_id": str(request.record_id),
            "failed_at": failed_at.value,
            "error": str(error),
        }

        if isinstance(error, PipelineError):
            context["error_type"] = type(error).__name__
            if error.diagnostics:
                context["diagnostics"] = error.diagnostics
            if error.status_code < 500:
                logger.warning("Upload rejected", extra=context)
            else:
                logger.error("Upload failed", extra=context)
        else:
            logger.error("Upload failed unexpectedly", extra=context, exc_info=error)
