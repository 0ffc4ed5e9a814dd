"""Process management for FFMPEG execution."""

import asyncio
import codecs
import functools
import logging
import os
import re
import shlex
import signal
import sys
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ..errors import ExecutionError

logger = logging.getLogger("ffcommand")

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")
_READ_SIZE = 4096


@dataclass
class ProcessResult:
    """Result of an FFMPEG process execution."""
    success: bool
    return_code: int
    stdout: str
    stderr: str
    command: str
    error_message: Optional[str] = None


def parse_error(stderr: str) -> str:
    """Extract meaningful error message from ffmpeg stderr."""
    lines = stderr.strip().split("\n")

    # Look for common error patterns
    error_patterns = [
        r"Error.*",
        r"Invalid.*",
        r"No such file.*",
        r".*not found.*",
        r"Permission denied.*",
        r"Conversion failed.*",
    ]

    for line in reversed(lines):
        for pattern in error_patterns:
            if re.search(pattern, line, re.IGNORECASE):
                return line.strip()

    # Return last non-empty line if no pattern matched
    for line in reversed(lines):
        if line.strip():
            return line.strip()

    return "Unknown error"


class RunningProcess:
    """Handle on a spawned ffmpeg process.

    Stdout is discarded; stderr is exposed line by line through
    :meth:`stderr_lines`. Cancellation and timeouts are watched in a
    background task that terminates the process.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        argv: list[str],
        cancel: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ):
        self._process = process
        self.argv = argv
        self.cancelled = False
        self.timed_out = False
        self._watcher: Optional[asyncio.Task] = None
        if cancel is not None or timeout is not None:
            self._watcher = asyncio.get_running_loop().create_task(
                self._watch(cancel, timeout)
            )

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def _watch(self, cancel: Optional[asyncio.Event], timeout: Optional[float]):
        waiter = cancel.wait() if cancel is not None else asyncio.Event().wait()
        try:
            await asyncio.wait_for(waiter, timeout=timeout)
            self.cancelled = True
            logger.debug("Cancelling ffmpeg process %s", self.pid)
        except asyncio.TimeoutError:
            self.timed_out = True
            logger.debug("ffmpeg process %s timed out after %ss", self.pid, timeout)
        self.terminate()

    def terminate(self) -> None:
        """Kill the process if it is still running."""
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass

    async def reap(self, timeout: float = 5.0) -> Optional[int]:
        """Wait briefly for a killed process to exit so it is not left unreaped.

        Returns:
            The exit code, or None if the process is still running.
        """
        try:
            return await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("ffmpeg process %s still running after kill", self.pid)
            return None
        finally:
            if self._watcher is not None and not self._watcher.done():
                self._watcher.cancel()

    async def stderr_lines(self) -> AsyncIterator[str]:
        """Yield decoded stderr lines until the stream closes.

        ffmpeg terminates its stats lines with a carriage return, so ``\\r``
        ends a line as well as ``\\n``.
        """
        stream = self._process.stderr
        # Multibyte characters may straddle two reads
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                break
            pending += decoder.decode(chunk)
            *lines, pending = _LINE_SPLIT_RE.split(pending)
            for line in lines:
                if line:
                    yield line
        pending += decoder.decode(b"", final=True)
        if pending:
            yield pending

    async def wait(self) -> int:
        """Wait for the process to exit.

        Returns:
            The exit code (always 0).

        Raises:
            ExecutionError: If the process failed, was killed, was cancelled
                or timed out.
        """
        try:
            return_code = await self._process.wait()
        finally:
            if self._watcher is not None and not self._watcher.done():
                self._watcher.cancel()

        if self.cancelled:
            raise ExecutionError(
                "ffmpeg was cancelled", return_code=return_code,
                cancelled=True, command=self.command_line,
            )
        if self.timed_out:
            raise ExecutionError(
                "ffmpeg timed out", return_code=return_code,
                timed_out=True, command=self.command_line,
            )
        if return_code < 0:
            try:
                sig_name = signal.Signals(-return_code).name
            except ValueError:
                sig_name = str(-return_code)
            raise ExecutionError(
                f"ffmpeg was killed with signal {sig_name}",
                return_code=return_code, signal=sig_name, command=self.command_line,
            )
        if return_code != 0:
            raise ExecutionError(
                f"ffmpeg exited with code {return_code}",
                return_code=return_code, command=self.command_line,
            )
        return return_code


class ProcessManager:
    """Spawns ffmpeg processes on the running event loop."""

    async def spawn(
        self,
        executable: str,
        args: list[str],
        cancel: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
        niceness: int = 0,
    ) -> RunningProcess:
        """Start ``executable`` with ``args``.

        Args:
            executable: Path or bare command name of the binary.
            args: Argument vector, without the executable.
            cancel: Event that terminates the process when set.
            timeout: Maximum run time in seconds.
            niceness: Scheduling priority adjustment (POSIX only).

        Raises:
            ExecutionError: If the process could not be started.
        """
        argv = [executable, *args]
        logger.debug("Running: %s", " ".join(shlex.quote(a) for a in argv))

        kwargs = {}
        if niceness and sys.platform != "win32":
            kwargs["preexec_fn"] = functools.partial(os.nice, niceness)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                **kwargs,
            )
        except OSError as e:
            raise ExecutionError(
                f"Failed to start {executable}: {e}", command=" ".join(argv)
            ) from e

        return RunningProcess(process, argv, cancel=cancel, timeout=timeout)
