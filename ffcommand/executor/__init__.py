"""FFMPEG command building and execution modules."""

from .command_builder import CommandOptions, FFmpegCommand
from .process_manager import ProcessManager, ProcessResult, RunningProcess
from .specs import ExplicitSize, Filter, PercentSize, PipeOptions
from .stream_bridge import NamedPipeStream, stream_input, stream_output

__all__ = [
    "CommandOptions",
    "FFmpegCommand",
    "ProcessManager",
    "ProcessResult",
    "RunningProcess",
    "ExplicitSize",
    "Filter",
    "PercentSize",
    "PipeOptions",
    "NamedPipeStream",
    "stream_input",
    "stream_output",
]
