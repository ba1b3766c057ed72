"""
Domain models for media ingestion.

These are plain dataclasses and enums with no knowledge of FastAPI, boto3
or Snowflake. The pipeline, the repository and the routes all speak in
these types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Optional
from uuid import UUID

from .errors import InvalidObjectReference


class AssetKind(Enum):
    """What an upload is for. Decides accepted types and pipeline stages."""
    VIDEO = "video"
    THUMBNAIL = "thumbnail"


class Geometry(Enum):
    """Orientation bucket derived from a probed display aspect ratio."""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


class UploadStage(Enum):
    """
    Stages of a single upload run, in order.

    REMUXED and INSPECTED only occur for video uploads.
    """
    RECEIVED = "received"
    AUTHORIZED = "authorized"
    VALIDATED = "validated"
    STAGED = "staged"
    REMUXED = "remuxed"
    INSPECTED = "inspected"
    UPLOADED = "uploaded"
    RECORD_UPDATED = "record_updated"
    DONE = "done"


@dataclass
class AssetUpload:
    """One inbound upload. Lives for the duration of a single request."""
    stream: BinaryIO
    content_type: str
    user_id: UUID
    video_id: UUID
    kind: AssetKind


@dataclass(frozen=True)
class ObjectReference:
    """
    Location of a stored object.

    Persisted on the video record as the opaque string "<bucket>,<key>".
    """
    bucket: str
    key: str

    SEPARATOR = ","

    def __str__(self) -> str:
        return f"{self.bucket}{self.SEPARATOR}{self.key}"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ObjectReference":
        """Decode a persisted reference. Raises InvalidObjectReference."""
        if not value:
            raise InvalidObjectReference("object reference is empty")

        tokens = value.split(cls.SEPARATOR)
        if len(tokens) != 2 or not all(t.strip() for t in tokens):
            raise InvalidObjectReference(f"failed to parse object reference: {value!r}")

        return cls(bucket=tokens[0].strip(), key=tokens[1].strip())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VideoRecord:
    """
    Video metadata as kept by the metadata store.

    The upload pipeline never creates or deletes these; it only patches
    video_url / thumbnail_url. Both hold either an ObjectReference string
    or, for degraded-mode thumbnails, a stable API URL.
    """
    id: UUID
    user_id: UUID
    title: str
    description: str = ""
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id
