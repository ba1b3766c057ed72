"""
Video preparation using FFmpeg and FFprobe.

Two operations are needed before a video is stored:
1. Fast-start remux: stream-copy the file into a new MP4 whose index
   (moov atom) sits at the front, so playback can start before the whole
   file has downloaded. No re-encode, a single pass over the data.
2. Inspection: read the first video stream's display aspect ratio and
   bucket it as landscape, portrait or other.

Both tools work on file paths, so they run against staged files.
"""

import json
import logging
import shutil
from typing import Optional, Protocol

from ...core.media.errors import InspectionFailed, RemuxFailed
from ...core.media.models import Geometry
from ...core.media.placement import classify_aspect_ratio
from ...core.media.staging import StagingArea
from .commands import CommandError, CommandRunner, SubprocessCommandRunner

logger = logging.getLogger(__name__)

PROCESSED_SUFFIX = ".processed"


class MediaTools(Protocol):
    """Protocol for the media preparation steps of the upload pipeline."""

    def remux_faststart(self, path: str, staging: StagingArea) -> str:
        """Write a fast-start copy of path and return the new path."""
        ...

    def inspect(self, path: str) -> Geometry:
        """Classify the video's orientation."""
        ...

    def check_available(self) -> dict[str, bool]:
        ...


class FFmpegMediaTools:
    """
    Media tools backed by the ffmpeg/ffprobe binaries.

    Commands go through an injectable CommandRunner; tests pass a fake that
    returns canned output.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        ffmpeg_timeout_seconds: float = 600,
        ffprobe_timeout_seconds: float = 30,
    ) -> None:
        self._runner = runner or SubprocessCommandRunner()
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._ffmpeg_timeout = ffmpeg_timeout_seconds
        self._ffprobe_timeout = ffprobe_timeout_seconds

    def check_available(self) -> dict[str, bool]:
        """Run `-version` on both binaries. Used by the readiness check."""
        available = {}
        for name, binary in (("ffmpeg", self._ffmpeg), ("ffprobe", self._ffprobe)):
            try:
                available[name] = self._runner.run([binary, "-version"], timeout=5).ok
            except CommandError:
                available[name] = False
        return available

    def probe_aspect_ratio(self, path: str) -> Optional[str]:
        """
        Return the display aspect ratio of the first video stream.

        None if there is no video stream or it has no ratio. Tool failure
        or unparseable output raises InspectionFailed.
        """
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        try:
            result = self._runner.run(cmd, timeout=self._ffprobe_timeout)
        except CommandError as e:
            raise InspectionFailed(f"ffprobe failed: {e}") from e

        if not result.ok:
            raise InspectionFailed(
                f"ffprobe exited with status {result.returncode}: {result.stderr_text()}"
            )

        try:
            info = json.loads(result.stdout)
        except ValueError as e:
            raise InspectionFailed(f"ffprobe returned malformed output: {e}") from e

        if not isinstance(info, dict):
            raise InspectionFailed("ffprobe output is not a JSON object")

        streams = info.get("streams", [])
        if not isinstance(streams, list):
            raise InspectionFailed("ffprobe output has a malformed streams list")

        for stream in streams:
            if isinstance(stream, dict) and stream.get("codec_type") == "video":
                ratio = stream.get("display_aspect_ratio")
                return ratio if isinstance(ratio, str) else None

        return None

    def inspect(self, path: str) -> Geometry:
        aspect_ratio = self.probe_aspect_ratio(path)
        geometry = classify_aspect_ratio(aspect_ratio)

        logger.info(
            "Video inspected",
            extra={"aspect_ratio": aspect_ratio, "geometry": geometry.value}
        )

        return geometry

    def remux_faststart(self, path: str, staging: StagingArea) -> str:
        # reserved before ffmpeg runs so a partial output is cleaned up too
        output_path = staging.reserve(path + PROCESSED_SUFFIX)

        cmd = [
            self._ffmpeg,
            "-y",
            "-i", path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

        try:
            result = self._runner.run(cmd, timeout=self._ffmpeg_timeout)
        except CommandError as e:
            raise RemuxFailed(f"ffmpeg failed: {e}") from e

        if not result.ok:
            raise RemuxFailed(
                f"ffmpeg exited with status {result.returncode}: {result.stderr_text()}"
            )

        logger.info("Video remuxed for fast start", extra={"output_path": output_path})

        return output_path


class MockMediaTools:
    """
    Media tools for local development without FFmpeg.

    Remux is a plain file copy and every video is classified with the
    configured geometry.
    """

    def __init__(self, geometry: Geometry = Geometry.LANDSCAPE) -> None:
        self._geometry = geometry
        logger.info("Initialized mock media tools")

    def check_available(self) -> dict[str, bool]:
        return {"ffmpeg": True, "ffprobe": True}

    def remux_faststart(self, path: str, staging: StagingArea) -> str:
        output_path = staging.reserve(path + PROCESSED_SUFFIX)
        shutil.copyfile(path, output_path)
        return output_path

    def inspect(self, path: str) -> Geometry:
        return self._geometry


def create_media_tools(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    ffmpeg_timeout_seconds: float = 600,
    ffprobe_timeout_seconds: float = 30,
) -> MediaTools:
    """
    Factory function for media tools.

    Args:
        mock_mode: If True, return mock tools (no FFmpeg required)

    Returns:
        MediaTools implementation
    """
    if mock_mode:
        return MockMediaTools()

    return FFmpegMediaTools(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        ffmpeg_timeout_seconds=ffmpeg_timeout_seconds,
        ffprobe_timeout_seconds=ffprobe_timeout_seconds,
    )
