"""Resolution of the ffmpeg / ffprobe executables.

Both paths start out from the ``FFMPEG_PATH`` / ``FFPROBE_PATH`` environment
variables and fall back to the bare command names, which the operating
system resolves through ``PATH`` when the process is spawned.
"""

import os

_ffmpeg_path: str = os.environ.get("FFMPEG_PATH") or "ffmpeg"
_ffprobe_path: str = os.environ.get("FFPROBE_PATH") or "ffprobe"


def get_ffmpeg_path() -> str:
    """Return the ffmpeg executable used for new runs."""
    return _ffmpeg_path


def get_ffprobe_path() -> str:
    """Return the ffprobe executable used for new probes."""
    return _ffprobe_path


def set_ffmpeg_path(path: str | os.PathLike) -> None:
    """Override the ffmpeg executable."""
    global _ffmpeg_path
    _ffmpeg_path = os.fspath(path)


def set_ffprobe_path(path: str | os.PathLike) -> None:
    """Override the ffprobe executable."""
    global _ffprobe_path
    _ffprobe_path = os.fspath(path)
