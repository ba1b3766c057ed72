"""
Video processing infrastructure.

Handles server-side video preparation using FFmpeg:
- Fast-start remux (moov atom moved to the front, streams copied)
- Aspect ratio inspection via FFprobe

External binaries run through an injectable command runner.
"""

from .commands import CommandError, CommandResult, CommandRunner, SubprocessCommandRunner
from .processor import (
    FFmpegMediaTools,
    MediaTools,
    MockMediaTools,
    create_media_tools,
)

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "SubprocessCommandRunner",
    "FFmpegMediaTools",
    "MediaTools",
    "MockMediaTools",
    "create_media_tools",
]
