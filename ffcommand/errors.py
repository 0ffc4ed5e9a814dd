"""Exception types raised by ffcommand."""

from typing import Optional


class FFmpegError(Exception):
    """Base class for all ffcommand errors."""


class UsageError(FFmpegError, ValueError):
    """Raised when the command builder is misused by the caller."""


class BridgeError(FFmpegError, OSError):
    """Raised when a channel endpoint cannot be bound."""


class ExecutionError(FFmpegError, RuntimeError):
    """Raised when the external process fails, is killed or is cancelled."""

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        signal: Optional[str] = None,
        cancelled: bool = False,
        timed_out: bool = False,
        command: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.return_code = return_code
        self.signal = signal
        self.cancelled = cancelled
        self.timed_out = timed_out
        self.command = command
        self.stderr = stderr
