"""
Upload staging.

External media tools need random access to a real file, so every inbound
stream is first copied to local ephemeral storage. Two pieces live here:

- StagingArea: owns every staged file created during one upload run and
  removes them all, newest first, when the run ends.
- UploadStager: validates the declared media type and copies the stream
  into a new staged file, enforcing the size cap for the asset kind.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Optional
from uuid import uuid4

from .errors import InvalidInput, PayloadTooLarge, StagingFailed, UnsupportedMediaType
from .models import AssetKind

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_TYPES: dict[AssetKind, frozenset[str]] = {
    AssetKind.VIDEO: frozenset({"video/mp4"}),
    AssetKind.THUMBNAIL: frozenset({"image/jpeg", "image/png"}),
}

_TOKEN = r"[A-Za-z0-9!#$&^_.+-]+"
_MEDIA_TYPE_RE = re.compile(rf"^{_TOKEN}/{_TOKEN}$")


def parse_media_type(content_type: Optional[str]) -> str:
    """
    Return the lower-cased base media type, parameters discarded.

    "video/MP4; codecs=avc1" -> "video/mp4"
    """
    if not content_type or not content_type.strip():
        raise InvalidInput("missing content type")

    base = content_type.split(";", 1)[0].strip().lower()
    if not _MEDIA_TYPE_RE.match(base):
        raise InvalidInput(f"invalid content type: {content_type!r}")

    return base


def validate_media_type(content_type: Optional[str], kind: AssetKind) -> str:
    media_type = parse_media_type(content_type)
    if media_type not in ACCEPTED_MEDIA_TYPES[kind]:
        raise UnsupportedMediaType(f"invalid file type: {media_type}")
    return media_type


class StagingArea:
    """
    Per-run owner of staged files.

    Files are named tubely-<run id>-<random> so concurrent runs never share
    a path. Cleanup is best effort: failures are logged and swallowed so
    they never hide the run's own outcome.
    """

    def __init__(self, directory: Optional[str] = None, run_id: Optional[str] = None) -> None:
        self._directory = directory
        self.run_id = run_id or uuid4().hex[:12]
        self._paths: list[str] = []
        self._handles: dict[str, list[BinaryIO]] = {}

        if directory:
            os.makedirs(directory, exist_ok=True)

    def __enter__(self) -> "StagingArea":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    def create(self, suffix: str = "") -> str:
        """Create a new empty staged file and return its path."""
        fd, path = tempfile.mkstemp(
            prefix=f"tubely-{self.run_id}-",
            suffix=suffix,
            dir=self._directory,
        )
        os.close(fd)
        self._paths.append(path)
        return path

    def reserve(self, path: str) -> str:
        """Take ownership of a path another tool is about to write."""
        self._paths.append(path)
        return path

    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        handle = open(path, mode)
        self._handles.setdefault(path, []).append(handle)
        return handle

    def release(self, path: str) -> None:
        """Close and delete one staged file early, once no stage needs it."""
        self._discard(path)
        if path in self._paths:
            self._paths.remove(path)

    def cleanup(self) -> None:
        for path in reversed(self._paths):
            self._discard(path)
        self._paths.clear()

    def _discard(self, path: str) -> None:
        for handle in self._handles.pop(path, []):
            try:
                handle.close()
            except OSError as e:
                logger.warning(
                    "Failed to close staged file",
                    extra={"path": path, "run_id": self.run_id, "error": str(e)}
                )

        try:
            os.remove(path)
            logger.debug("Removed staged file", extra={"path": path, "run_id": self.run_id})
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Failed to delete staged file",
                extra={"path": path, "run_id": self.run_id, "error": str(e)}
            )


@dataclass
class StagedUpload:
    """A validated upload copied to local storage, handle rewound to 0."""
    path: str
    handle: BinaryIO
    media_type: str
    size_bytes: int

    @property
    def extension(self) -> str:
        return self.media_type.split("/", 1)[1]


class UploadStager:
    """Copies an inbound stream to a staged file after checking its type."""

    CHUNK_SIZE = 1024 * 1024

    def __init__(self, max_bytes: dict[AssetKind, int]) -> None:
        self._max_bytes = max_bytes

    def stage(
        self,
        stream: BinaryIO,
        content_type: Optional[str],
        kind: AssetKind,
        staging: StagingArea,
    ) -> StagedUpload:
        media_type = validate_media_type(content_type, kind)
        limit = self._max_bytes[kind]

        path = staging.create(suffix=f".{media_type.split('/', 1)[1]}")

        try:
            handle = staging.open(path, "w+b")
            size = self._copy(stream, handle, limit)
            handle.flush()
            handle.seek(0)
        except OSError as e:
            raise StagingFailed(f"failed to stage upload: {e}") from e

        logger.info(
            "Upload staged",
            extra={
                "run_id": staging.run_id,
                "media_type": media_type,
                "size_bytes": size,
            }
        )

        return StagedUpload(path=path, handle=handle, media_type=media_type, size_bytes=size)

    def _copy(self, stream: BinaryIO, handle: BinaryIO, limit: int) -> int:
        total = 0
        while True:
            chunk = stream.read(self.CHUNK_SIZE)
            if not chunk:
                return total
            total += len(chunk)
            if total > limit:
                raise PayloadTooLarge(f"upload exceeds the {limit} byte limit")
            handle.write(chunk)
