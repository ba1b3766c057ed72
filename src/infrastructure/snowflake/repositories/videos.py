"""
Snowflake repository for video metadata records.

The upload pipeline reads a record to check ownership and patches its
video_url / thumbnail_url. Creating records belongs to the metadata
service; create_video exists here for seeding and tests.

The application code never writes SQL directly; it asks the repository
for what it needs in domain terms.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from uuid import UUID

from src.core.media.errors import RecordNotFound
from src.core.media.models import VideoRecord

logger = logging.getLogger(__name__)

VIDEO_COLUMNS = """
    video_id,
    user_id,
    title,
    description,
    thumbnail_url,
    video_url,
    created_at,
    updated_at
"""


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "TUBELY"
    schema: str = "MEDIA"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class VideoNotFoundError(RecordNotFound):
    """Raised when a requested video doesn't exist."""
    pass


class SnowflakeVideoRepository:
    """Repository for video metadata persistence."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def get_video(self, video_id: UUID) -> VideoRecord:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {VIDEO_COLUMNS}
                FROM videos
                WHERE video_id = %s
            """, (str(video_id),))

            row = cursor.fetchone()
            if not row:
                raise VideoNotFoundError(f"Video {video_id} not found")

            return self._build_video(row)

        finally:
            cursor.close()

    def list_videos_for_user(self, user_id: UUID) -> list[VideoRecord]:
        """All videos owned by user_id, newest first."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {VIDEO_COLUMNS}
                FROM videos
                WHERE user_id = %s
                ORDER BY created_at DESC
            """, (str(user_id),))

            return [self._build_video(row) for row in cursor.fetchall()]

        finally:
            cursor.close()

    def create_video(self, video: VideoRecord) -> None:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO videos ({VIDEO_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                str(video.id),
                str(video.user_id),
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                video.created_at,
                video.updated_at,
            ))
            self._conn.commit()

            logger.info(
                "Created video record",
                extra={"video_id": str(video.id), "user_id": str(video.user_id)}
            )

        finally:
            cursor.close()

    def update_video(self, video: VideoRecord) -> None:
        """
        Persist the mutable fields of a video record.

        Raises VideoNotFoundError if no row was updated. The transaction is
        rolled back on any failure.
        """
        cursor = self._conn.cursor()
        updated_at = datetime.now(timezone.utc)

        try:
            cursor.execute("""
                UPDATE videos
                SET title = %s,
                    description = %s,
                    thumbnail_url = %s,
                    video_url = %s,
                    updated_at = %s
                WHERE video_id = %s
            """, (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                updated_at,
                str(video.id),
            ))

            if cursor.rowcount == 0:
                raise VideoNotFoundError(f"Video {video.id} not found")

            self._conn.commit()
            video.updated_at = updated_at

            logger.info(
                "Updated video record",
                extra={"video_id": str(video.id)}
            )

        except Exception as e:
            self._conn.rollback()
            logger.error(
                "Failed to update video",
                extra={"video_id": str(video.id), "error": str(e)}
            )
            raise

        finally:
            cursor.close()

    def check_connection(self) -> bool:
        """Cheap round trip used by the readiness check."""
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_video(self, row: tuple) -> VideoRecord:
        (
            video_id, user_id, title, description,
            thumbnail_url, video_url, created_at, updated_at,
        ) = row

        return VideoRecord(
            id=UUID(str(video_id)),
            user_id=UUID(str(user_id)),
            title=title or "",
            description=description or "",
            thumbnail_url=thumbnail_url,
            video_url=video_url,
            created_at=created_at or datetime.now(timezone.utc),
            updated_at=updated_at or datetime.now(timezone.utc),
        )
