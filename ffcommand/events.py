"""Notification names, payload models and listener registry for commands."""

import logging
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

logger = logging.getLogger("ffcommand")

Listener = Callable[..., Any]


class CommandEvent(str, Enum):
    """Notifications published by a running command.

    Payloads, in call order:

    - ``START``: the resolved invocation string.
    - ``CODEC_DATA``: a :class:`CodecData`.
    - ``PROGRESS``: a :class:`Progress`.
    - ``STDERR``: one diagnostic line.
    - ``ERROR``: the ``ExecutionError``, ``""`` (stdout), joined diagnostics.
    - ``END``: ``""`` (stdout), joined diagnostics.
    """
    START = "start"
    CODEC_DATA = "codecData"
    PROGRESS = "progress"
    STDERR = "stderr"
    ERROR = "error"
    END = "end"


class CodecData(BaseModel):
    """Input format and stream description reported by ffmpeg."""
    format: str = ""
    duration: str = ""
    audio: str = ""
    audio_details: list[str] = []
    video: str = ""
    video_details: list[str] = []


class Progress(BaseModel):
    """Metrics from a single ffmpeg stats line."""
    frames: int = 0
    current_fps: float = 0.0
    current_kbps: float = 0.0
    target_size: int = 0
    timemark: str = ""


class EventEmitter:
    """Minimal synchronous listener registry."""

    def __init__(self) -> None:
        self._listeners: dict[CommandEvent, list[Listener]] = {}

    def on(self, event: CommandEvent | str, callback: Listener):
        """Register ``callback`` for every ``event`` notification."""
        self._listeners.setdefault(CommandEvent(event), []).append(callback)
        return self

    def once(self, event: CommandEvent | str, callback: Listener):
        """Register ``callback`` for the next ``event`` notification only."""
        def wrapper(*args):
            self.off(event, wrapper)
            callback(*args)

        return self.on(event, wrapper)

    def off(self, event: CommandEvent | str, callback: Listener):
        """Remove a previously registered listener, if present."""
        listeners = self._listeners.get(CommandEvent(event), [])
        if callback in listeners:
            listeners.remove(callback)
        return self

    def listener_count(self, event: CommandEvent | str) -> int:
        return len(self._listeners.get(CommandEvent(event), []))

    def emit(self, event: CommandEvent | str, *args) -> bool:
        """Call every listener of ``event`` with ``args``.

        A listener that raises is logged and skipped so the remaining
        listeners still run.

        Returns:
            True if at least one listener was registered.
        """
        listeners = list(self._listeners.get(CommandEvent(event), []))
        for callback in listeners:
            try:
                callback(*args)
            except Exception:
                logger.warning("Listener for %r raised", CommandEvent(event).value, exc_info=True)
        return bool(listeners)
