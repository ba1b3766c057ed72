"""
Video asset API endpoints.

Upload flow for one asset:
1. Caller identity comes from the bearer token
2. The pipeline checks ownership, stages the upload, prepares it
   (videos only), stores it and patches the video record
3. The response carries the updated record with fresh access URLs

Read endpoints re-sign stored references on every request; access URLs
are never persisted.
"""

import asyncio
import logging
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, File, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.media.errors import Forbidden, InvalidInput, PipelineError, RecordNotFound
from ...core.media.models import AssetKind, AssetUpload, VideoRecord
from ..dependencies import (
    CurrentUserId,
    ThumbnailStoreDep,
    UploadPipelineDep,
    UrlIssuerDep,
    VideoRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class VideoResponse(BaseModel):
    """A video record as returned to viewers, URLs already signed."""
    id: UUID = Field(description="Video identifier")
    user_id: UUID = Field(description="Owning user")
    title: str = Field(description="Video title")
    description: str = Field(description="Video description")
    thumbnail_url: Optional[str] = Field(None, description="Access URL for the thumbnail")
    video_url: Optional[str] = Field(None, description="Time-limited access URL for the video")
    created_at: datetime
    updated_at: datetime
    url_error: Optional[str] = Field(
        None,
        description="Set when the stored object reference could not be turned into a URL"
    )

    @classmethod
    def from_record(
        cls,
        record: VideoRecord,
        url_error: Optional[PipelineError] = None,
    ) -> "VideoResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            title=record.title,
            description=record.description,
            thumbnail_url=record.thumbnail_url,
            video_url=record.video_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
            url_error=url_error.message if url_error else None,
        )


def parse_video_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except ValueError:
        raise InvalidInput("Invalid ID")


# ---------------------------------------------------------------------------
# Upload Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/videos/{video_id}/video",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload video file",
    description="Upload an MP4, remux it for fast start, and attach it to the video record",
)
async def upload_video(
    video_id: str,
    video: Annotated[UploadFile, File(description="MP4 video")],
    user_id: CurrentUserId,
    pipeline: UploadPipelineDep,
) -> VideoResponse:
    upload = AssetUpload(
        stream=video.file,
        content_type=video.content_type or "",
        user_id=user_id,
        video_id=parse_video_id(video_id),
        kind=AssetKind.VIDEO,
    )

    try:
        record, url_error = await asyncio.to_thread(pipeline.upload_video, upload)
    finally:
        await video.close()

    return VideoResponse.from_record(record, url_error)


@router.post(
    "/videos/{video_id}/thumbnail",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload thumbnail",
    description="Upload a JPEG or PNG thumbnail and attach it to the video record",
)
async def upload_thumbnail(
    video_id: str,
    thumbnail: Annotated[UploadFile, File(description="JPEG or PNG image")],
    user_id: CurrentUserId,
    pipeline: UploadPipelineDep,
) -> VideoResponse:
    upload = AssetUpload(
        stream=thumbnail.file,
        content_type=thumbnail.content_type or "",
        user_id=user_id,
        video_id=parse_video_id(video_id),
        kind=AssetKind.THUMBNAIL,
    )

    try:
        record, url_error = await asyncio.to_thread(pipeline.upload_thumbnail, upload)
    finally:
        await thumbnail.close()

    return VideoResponse.from_record(record, url_error)


# ---------------------------------------------------------------------------
# Read Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/videos",
    response_model=list[VideoResponse],
    summary="List my videos",
    description="All videos owned by the caller, each with freshly signed URLs",
)
async def list_videos(
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    url_issuer: UrlIssuerDep,
) -> list[VideoResponse]:
    records = repository.list_videos_for_user(user_id)
    return [
        VideoResponse.from_record(record, error)
        for record, error in url_issuer.sign_records(records)
    ]


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get video",
)
async def get_video(
    video_id: str,
    user_id: CurrentUserId,
    repository: VideoRepositoryDep,
    url_issuer: UrlIssuerDep,
) -> VideoResponse:
    record = repository.get_video(parse_video_id(video_id))
    if not record.is_owned_by(user_id):
        raise Forbidden("video does not belong to the caller")

    [(signed, error)] = url_issuer.sign_records([record])
    return VideoResponse.from_record(signed, error)


@router.get(
    "/thumbnails/{video_id}",
    summary="Get thumbnail (in-process store)",
    description="Serves thumbnails kept in memory when thumbnail_store_mode is 'memory'",
    response_class=Response,
)
async def get_thumbnail(video_id: str, thumbnail_store: ThumbnailStoreDep) -> Response:
    thumbnail = thumbnail_store.get(parse_video_id(video_id))
    if thumbnail is None:
        raise RecordNotFound("Thumbnail not found")

    return Response(content=thumbnail.data, media_type=thumbnail.media_type)
