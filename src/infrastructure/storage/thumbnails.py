"""
In-process thumbnail store.

Fallback serving path for thumbnails when presigned URLs aren't available:
bytes are kept in memory keyed by video id and served from
/api/thumbnails/{video_id}. Nothing here survives a restart.

Every upload writes to the same mapping, so access goes through one lock
owned by the store instance.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredThumbnail:
    data: bytes
    media_type: str


class ThumbnailStore(Protocol):
    def put(self, video_id: UUID, data: bytes, media_type: str) -> None: ...
    def get(self, video_id: UUID) -> Optional[StoredThumbnail]: ...


class InMemoryThumbnailStore:
    """Thread-safe video id -> thumbnail mapping."""

    def __init__(self) -> None:
        self._thumbnails: dict[UUID, StoredThumbnail] = {}
        self._lock = threading.Lock()

    def put(self, video_id: UUID, data: bytes, media_type: str) -> None:
        with self._lock:
            self._thumbnails[video_id] = StoredThumbnail(data=data, media_type=media_type)

        logger.debug(
            "Stored thumbnail in memory",
            extra={"video_id": str(video_id), "size_bytes": len(data)}
        )

    def get(self, video_id: UUID) -> Optional[StoredThumbnail]:
        with self._lock:
            return self._thumbnails.get(video_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._thumbnails)
