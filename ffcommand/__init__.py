"""
ffcommand: fluent builder for ffmpeg invocations

Builds ffmpeg argument vectors for any number of inputs and outputs, runs
them on the asyncio event loop and lets ffmpeg read from / write to
in-process streams through local sockets.

Example usage:
    command = FFmpegCommand().input("in.mkv").output("out.mp4").audio_codec("aac")
    command.on("stderr", print)
    await command.run()
"""

__version__ = "1.0.0"

from .errors import BridgeError, ExecutionError, FFmpegError, UsageError
from .events import CodecData, CommandEvent, Progress
from .executable import get_ffmpeg_path, get_ffprobe_path, set_ffmpeg_path, set_ffprobe_path
from .executor import (
    CommandOptions,
    ExplicitSize,
    FFmpegCommand,
    Filter,
    PercentSize,
    PipeOptions,
    ProcessManager,
    ProcessResult,
)
from .video import MediaAnalyzer, MediaMetadata

__all__ = [
    "BridgeError",
    "ExecutionError",
    "FFmpegError",
    "UsageError",
    "CodecData",
    "CommandEvent",
    "Progress",
    "get_ffmpeg_path",
    "get_ffprobe_path",
    "set_ffmpeg_path",
    "set_ffprobe_path",
    "CommandOptions",
    "ExplicitSize",
    "FFmpegCommand",
    "Filter",
    "PercentSize",
    "PipeOptions",
    "ProcessManager",
    "ProcessResult",
    "MediaAnalyzer",
    "MediaMetadata",
]
