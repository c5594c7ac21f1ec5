"""
Video endpoints.

Uploads go through the UploadPipeline:
1. Content type and ownership are checked before the body is read
2. The body is streamed into a scratch file (bounded)
3. ffprobe reads the dimensions, ffmpeg remuxes for fast start
4. The result is stored under landscape/, portrait/ or other/
5. The record is updated and returned with a playable URL

Reads return the record with URLs resolved through the configured URL
policy, so signed URLs are always fresh and never persisted.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, File, UploadFile, status
from pydantic import BaseModel, Field

from ...core.media.errors import InvalidIdentifier, NotOwner
from ...core.media.models import MediaKind, UploadRequest, VideoRecord
from ..dependencies import (
    CurrentUser,
    RecordStoreDep,
    UploadPipelineDep,
    UrlPolicyDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_THUMBNAIL_BYTES = 10 << 20  # 10 MiB


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateVideoRequest(BaseModel):
    """Metadata for a new video record."""
    title: str = Field(min_length=1, max_length=200, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")


class VideoResponse(BaseModel):
    """A video record as returned to clients."""
    id: UUID
    user_id: str
    title: str
    description: str
    thumbnail_url: Optional[str] = Field(default=None, description="Playable thumbnail URL")
    video_url: Optional[str] = Field(default=None, description="Playable video URL")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            description=record.description,
            thumbnail_url=record.thumbnail_url,
            video_url=record.video_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


def parse_video_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise InvalidIdentifier("Invalid ID")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/videos",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video record",
)
async def create_video(
    body: CreateVideoRequest,
    user_id: CurrentUser,
    records: RecordStoreDep,
) -> VideoResponse:
    record = records.create_record(user_id, body.title, body.description)

    logger.info(
        "Video record created",
        extra={"record_id": str(record.id), "user_id": user_id}
    )

    return VideoResponse.from_record(record)


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get a video record",
    description="Returns the record with URLs resolved for playback. Owner only.",
)
async def get_video(
    video_id: str,
    user_id: CurrentUser,
    records: RecordStoreDep,
    url_policy: UrlPolicyDep,
) -> VideoResponse:
    record = records.get_record(parse_video_id(video_id))
    # reads are owner-only, like uploads
    if record.user_id != user_id:
        raise NotOwner("You don't own this video")

    resolved = await url_policy.resolve_record(record)
    return VideoResponse.from_record(resolved)


@router.post(
    "/video_upload/{video_id}",
    response_model=VideoResponse,
    summary="Upload a video file",
    description="Accepts an MP4 in the 'video' form field. Max size is set by MAX_UPLOAD_SIZE_MB.",
)
async def upload_video(
    video_id: str,
    video: Annotated[UploadFile, File(description="MP4 video")],
    user_id: CurrentUser,
    pipeline: UploadPipelineDep,
) -> VideoResponse:
    request = UploadRequest(
        record_id=parse_video_id(video_id),
        requester_id=user_id,
        content_type=video.content_type or "",
        stream=video,
        max_bytes=pipeline.config.max_upload_bytes,
        kind=MediaKind.VIDEO,
    )

    try:
        result = await pipeline.process_video(request)
    finally:
        await video.close()

    return VideoResponse.from_record(result.record)


@router.post(
    "/thumbnail_upload/{video_id}",
    response_model=VideoResponse,
    summary="Upload a thumbnail image",
    description="Accepts a JPEG or PNG in the 'thumbnail' form field, up to 10 MB.",
)
async def upload_thumbnail(
    video_id: str,
    thumbnail: Annotated[UploadFile, File(description="JPEG or PNG image")],
    user_id: CurrentUser,
    pipeline: UploadPipelineDep,
) -> VideoResponse:
    request = UploadRequest(
        record_id=parse_video_id(video_id),
        requester_id=user_id,
        content_type=thumbnail.content_type or "",
        stream=thumbnail,
        max_bytes=MAX_THUMBNAIL_BYTES,
        kind=MediaKind.THUMBNAIL,
    )

    try:
        result = await pipeline.process_thumbnail(request)
    finally:
        await thumbnail.close()

    return VideoResponse.from_record(result.record)
