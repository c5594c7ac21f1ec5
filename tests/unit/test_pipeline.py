"""
Tests for the upload pipeline orchestrator.

The pipeline runs with real staging, probing and remuxing code; only the
external programs (mock runner) and S3 (mock store) are faked. Every
failure test also checks the staging directory is empty afterwards.
"""

from typing import BinaryIO
from uuid import uuid4

import pytest

from tubely.core.media.errors import (
    InvalidDimensions,
    IOFault,
    NoStreamData,
    NotOwner,
    ProbeUnavailable,
    RecordNotFound,
    RemuxFailed,
    SigningUnavailable,
    SizeExceeded,
    UnsupportedMediaType,
    UploadRejected,
)
from tubely.core.media.models import (
    MediaKind,
    PipelineRun,
    PipelineState,
    StoredObjectRef,
)
from tubely.core.media.pipeline import PipelineConfig
from tubely.infrastructure.storage.client import MockObjectStore
from tubely.infrastructure.storage.urls import DirectUrlPolicy, SignedUrlPolicy
from tubely.infrastructure.video.runner import (
    CommandResult,
    MockCommandRunner,
    ToolLaunchError,
    canned_probe_output,
)


class RejectingObjectStore(MockObjectStore):
    """Object store whose writes always fail."""

    async def upload(self, source: BinaryIO, key: str, content_type: str) -> StoredObjectRef:
        raise UploadRejected("Failed to upload to S3", diagnostics="AccessDenied")


def runner_for(width: int, height: int) -> MockCommandRunner:
    return MockCommandRunner(responses={
        "ffprobe": CommandResult(0, canned_probe_output(width, height)),
    })


# ---------------------------------------------------------------------------
# Video Uploads
# ---------------------------------------------------------------------------

class TestProcessVideo:

    async def test_landscape_upload_end_to_end(self, make_pipeline, make_request, record, records, object_store):
        pipeline = make_pipeline(runner=runner_for(1280, 720))
        run = PipelineRun()

        result = await pipeline.process_video(make_request(), run=run)

        expected_key = f"landscape/{record.id}.mp4"
        assert result.object_ref == StoredObjectRef("tubely-test", expected_key)
        assert ("tubely-test", expected_key) in object_store.objects
        assert result.url.startswith(f"mock://tubely-test/{expected_key}?")
        assert run.state == PipelineState.COMPLETED
        assert run.history == [
            PipelineState.RECEIVED,
            PipelineState.VALIDATED,
            PipelineState.STAGED,
            PipelineState.PROBED,
            PipelineState.REMUXED,
            PipelineState.CLASSIFIED,
            PipelineState.UPLOADED,
            PipelineState.RESOLVED,
            PipelineState.COMPLETED,
        ]

    @pytest.mark.parametrize("width,height,prefix", [
        (1080, 1920, "portrait/"),
        (1080, 1080, "other/"),
        (1920, 1080, "landscape/"),
    ])
    async def test_key_prefix_follows_orientation(self, make_pipeline, make_request, record, width, height, prefix):
        pipeline = make_pipeline(runner=runner_for(width, height))

        result = await pipeline.process_video(make_request())

        assert result.object_ref.key == f"{prefix}{record.id}.mp4"

    async def test_signed_policy_persists_reference_not_url(self, make_pipeline, make_request, record, records):
        pipeline = make_pipeline()

        result = await pipeline.process_video(make_request())

        stored = records.get_record(record.id)
        assert stored.video_url == result.object_ref.serialize()
        assert result.record.video_url.startswith("mock://")

    async def test_direct_policy_persists_permanent_url(self, make_pipeline, make_request, record, records):
        pipeline = make_pipeline(url_policy=DirectUrlPolicy("https://cdn.example.com"))

        result = await pipeline.process_video(make_request())

        expected = f"https://cdn.example.com/tubely-test/landscape/{record.id}.mp4"
        assert records.get_record(record.id).video_url == expected
        assert result.url == expected

    async def test_uploaded_bytes_are_the_remuxed_file(self, make_pipeline, make_request, runner, object_store):
        data = b"\x00\x00\x00\x18ftypisom remux me"
        pipeline = make_pipeline()

        result = await pipeline.process_video(make_request(data=data))

        ffmpeg_call = runner.calls_to("ffmpeg")[0]
        assert ffmpeg_call[-1].endswith(".processing")
        body, content_type = object_store.objects[("tubely-test", result.object_ref.key)]
        assert body == data
        assert content_type == "video/mp4"

    async def test_completed_run_leaves_no_scratch_files(self, make_pipeline, make_request, staging_dir):
        run = PipelineRun()

        await make_pipeline().process_video(make_request(), run=run)

        assert len(run.staged_files) == 2
        assert list(staging_dir.iterdir()) == []

    async def test_content_type_parameters_are_ignored(self, make_pipeline, make_request):
        result = await make_pipeline().process_video(
            make_request(content_type="Video/MP4; codecs=avc1")
        )
        assert result.object_ref.key.endswith(".mp4")

    async def test_reupload_overwrites_same_key(self, make_pipeline, make_request, object_store):
        pipeline = make_pipeline()

        first = await pipeline.process_video(make_request(data=b"first"))
        second = await pipeline.process_video(make_request(data=b"second"))

        assert first.object_ref == second.object_ref
        assert object_store.objects[("tubely-test", second.object_ref.key)][0] == b"second"


# ---------------------------------------------------------------------------
# Validation happens before anything is written
# ---------------------------------------------------------------------------

class TestValidation:

    async def test_unsupported_type_is_never_staged(self, make_pipeline, make_request, runner, object_store, staging_dir):
        run = PipelineRun()

        with pytest.raises(UnsupportedMediaType):
            await make_pipeline().process_video(make_request(content_type="video/avi"), run=run)

        assert run.state == PipelineState.FAILED
        assert run.history == [PipelineState.RECEIVED, PipelineState.FAILED]
        assert run.staged_files == []
        assert runner.calls == []
        assert object_store.objects == {}
        assert list(staging_dir.iterdir()) == []

    async def test_missing_content_type(self, make_pipeline, make_request):
        with pytest.raises(UnsupportedMediaType):
            await make_pipeline().process_video(make_request(content_type=""))

    async def test_image_is_not_a_video(self, make_pipeline, make_request):
        with pytest.raises(UnsupportedMediaType):
            await make_pipeline().process_video(make_request(content_type="image/png"))

    async def test_video_upload_ignores_request_kind(self, make_pipeline, make_request, runner, staging_dir):
        request = make_request(content_type="image/png", kind=MediaKind.THUMBNAIL)

        with pytest.raises(UnsupportedMediaType):
            await make_pipeline().process_video(request)

        assert runner.calls == []
        assert list(staging_dir.iterdir()) == []

    async def test_non_owner_is_rejected_before_staging(self, make_pipeline, make_request, runner, staging_dir, records, record):
        run = PipelineRun()

        with pytest.raises(NotOwner) as exc_info:
            await make_pipeline().process_video(make_request(requester_id="intruder"), run=run)

        assert exc_info.value.status_code == 401
        assert run.staged_files == []
        assert runner.calls == []
        assert list(staging_dir.iterdir()) == []
        assert records.get_record(record.id).video_url is None

    async def test_unknown_record(self, make_pipeline, make_request, staging_dir):
        request = make_request()
        request.record_id = uuid4()

        with pytest.raises(RecordNotFound):
            await make_pipeline().process_video(request)

    async def test_oversized_upload(self, make_pipeline, make_request, staging_dir):
        pipeline = make_pipeline(config=PipelineConfig(max_upload_bytes=16))

        with pytest.raises(SizeExceeded):
            await pipeline.process_video(make_request(data=b"x" * 17))

        assert list(staging_dir.iterdir()) == []


# ---------------------------------------------------------------------------
# Failures at each stage
# ---------------------------------------------------------------------------

class TestStageFailures:

    async def test_zero_streams_fails_without_upload(self, make_pipeline, make_request, object_store, staging_dir):
        runner = MockCommandRunner(responses={
            "ffprobe": CommandResult(0, '{"streams": []}'),
        })
        run = PipelineRun()

        with pytest.raises(NoStreamData):
            await make_pipeline(runner=runner).process_video(make_request(), run=run)

        assert run.state == PipelineState.FAILED
        assert isinstance(run.failure, NoStreamData)
        assert runner.calls_to("ffmpeg") == []
        assert object_store.objects == {}
        assert list(staging_dir.iterdir()) == []

    @pytest.mark.parametrize("case", [
        "stream_drops",
        "probe_missing",
        "remux_fails",
        "bad_dimensions",
        "upload_rejected",
        "signing_unavailable",
    ])
    async def test_no_scratch_files_survive_a_failure(self, case, make_pipeline, make_request, broken_stream, staging_dir):
        runner = MockCommandRunner()
        store = MockObjectStore(bucket_name="tubely-test")
        url_policy = None
        request = make_request()

        if case == "stream_drops":
            request = make_request(stream=broken_stream)
            expected = IOFault
        elif case == "probe_missing":
            runner.errors["ffprobe"] = ToolLaunchError("ffprobe not found")
            expected = ProbeUnavailable
        elif case == "remux_fails":
            runner.responses["ffmpeg"] = CommandResult(1, "", "moov atom not found")
            expected = RemuxFailed
        elif case == "bad_dimensions":
            runner.responses["ffprobe"] = CommandResult(0, canned_probe_output(0, 1080))
            expected = InvalidDimensions
        elif case == "upload_rejected":
            store = RejectingObjectStore(bucket_name="tubely-test")
            expected = UploadRejected
        else:
            url_policy = SignedUrlPolicy(None)
            expected = SigningUnavailable

        pipeline = make_pipeline(runner=runner, object_store=store, url_policy=url_policy)
        run = PipelineRun()

        with pytest.raises(expected):
            await pipeline.process_video(request, run=run)

        assert run.state == PipelineState.FAILED
        assert list(staging_dir.iterdir()) == []

    async def test_failed_upload_leaves_record_untouched(self, make_pipeline, make_request, records, record):
        pipeline = make_pipeline(object_store=RejectingObjectStore())

        with pytest.raises(UploadRejected):
            await pipeline.process_video(make_request())

        assert records.get_record(record.id).video_url is None

    async def test_failed_signing_leaves_record_untouched(self, make_pipeline, make_request, records, record):
        pipeline = make_pipeline(url_policy=SignedUrlPolicy(None))

        with pytest.raises(SigningUnavailable):
            await pipeline.process_video(make_request())

        assert records.get_record(record.id).video_url is None


# ---------------------------------------------------------------------------
# Thumbnails
# ---------------------------------------------------------------------------

class TestProcessThumbnail:

    async def test_stores_image_under_thumbnails(self, make_pipeline, make_request, record, records, runner, object_store, staging_dir):
        request = make_request(
            data=b"\x89PNG\r\n\x1a\n fake", content_type="image/png", kind=MediaKind.THUMBNAIL
        )

        result = await make_pipeline().process_thumbnail(request)

        key = f"thumbnails/{record.id}.png"
        assert result.object_ref.key == key
        assert object_store.objects[("tubely-test", key)] == (b"\x89PNG\r\n\x1a\n fake", "image/png")
        assert records.get_record(record.id).thumbnail_url == f"tubely-test,{key}"
        assert result.record.thumbnail_url.startswith(f"mock://tubely-test/{key}")
        assert runner.calls == []
        assert list(staging_dir.iterdir()) == []

    async def test_jpeg_gets_jpg_extension(self, make_pipeline, make_request, record):
        request = make_request(content_type="image/jpeg", kind=MediaKind.THUMBNAIL)

        result = await make_pipeline().process_thumbnail(request)

        assert result.object_ref.key == f"thumbnails/{record.id}.jpg"

    async def test_video_is_not_a_thumbnail(self, make_pipeline, make_request):
        request = make_request(content_type="video/mp4", kind=MediaKind.THUMBNAIL)

        with pytest.raises(UnsupportedMediaType):
            await make_pipeline().process_thumbnail(request)
