"""
External command execution.

FFmpeg and FFprobe are invoked through a CommandRunner so the media tools
can be tested with a fake that never spawns a process. Every invocation is
bounded by a timeout; subprocess.run kills the child when it expires.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a command can't be started or doesn't finish in time."""
    pass


@dataclass
class CommandResult:
    """Exit status and captured output of one finished command."""
    args: list[str]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_text(self, limit: int = 2000) -> str:
        return self.stderr.decode("utf-8", errors="replace")[-limit:]


class CommandRunner(Protocol):
    def run(self, args: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        ...


class SubprocessCommandRunner:
    """Runs commands as child processes, one per call, no shell."""

    def __init__(self, default_timeout: Optional[float] = None) -> None:
        self._default_timeout = default_timeout

    def run(self, args: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        args = [str(a) for a in args]
        timeout = timeout if timeout is not None else self._default_timeout

        logger.debug("Running command", extra={"command": args[0], "argv": args})

        try:
            completed = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(f"{args[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            logger.error(
                "Command timed out",
                extra={"command": args[0], "timeout_seconds": timeout}
            )
            raise CommandError(f"{args[0]} timed out after {timeout}s") from e

        return CommandResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or b"",
            stderr=completed.stderr or b"",
        )
