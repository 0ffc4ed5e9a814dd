"""Pytest configuration and shared fakes for ffcommand tests.

Puts the project root on sys.path so ``import ffcommand`` works without an
installed distribution, and provides a fake execution facility so builder
tests never spawn ffmpeg.
"""

import asyncio
import os
import sys

import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ffcommand.errors import ExecutionError  # noqa: E402


class FakeProcess:
    """Stands in for RunningProcess with scripted stderr and exit status."""

    def __init__(self, argv, lines, error=None, hang=False):
        self.argv = argv
        self._lines = list(lines)
        self._error = error
        self._hang = hang
        self.terminated = False
        self.reaped = False

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)

    async def stderr_lines(self):
        for line in self._lines:
            await asyncio.sleep(0)
            yield line
        if self._hang:
            await asyncio.Event().wait()

    async def wait(self) -> int:
        if self._error is not None:
            raise self._error
        return 0

    def terminate(self) -> None:
        self.terminated = True

    async def reap(self, timeout: float = 5.0):
        self.reaped = True
        return -9


class FakeProcessManager:
    """Records spawn() calls and hands out FakeProcess objects."""

    def __init__(self, lines=(), error=None, hang=False):
        self.lines = lines
        self.error = error
        self.hang = hang
        self.calls = []
        self.process = None

    async def spawn(self, executable, args, cancel=None, timeout=None, niceness=0):
        self.calls.append({
            "executable": executable,
            "args": list(args),
            "cancel": cancel,
            "timeout": timeout,
            "niceness": niceness,
        })
        self.process = FakeProcess([executable, *args], self.lines, self.error, self.hang)
        return self.process

    @property
    def args(self):
        return self.calls[-1]["args"]


@pytest.fixture
def fake_manager():
    return FakeProcessManager()


@pytest.fixture
def failing_manager():
    return FakeProcessManager(
        lines=["Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':", "in.mp4: Invalid data found when processing input"],
        error=ExecutionError("ffmpeg exited with code 1", return_code=1),
    )
