"""Fluent FFMPEG command builder with multiple inputs and outputs.

Input-scoped methods (``input_format``, ``seek_input``, ...) apply to the
most recently added input; output-scoped methods (``audio_codec``,
``size``, ``duration``, ...) apply to the most recently added output.

Example::

    command = (
        FFmpegCommand()
        .input("in.mp4")
        .output("out.webm")
        .video_codec("libvpx-vp9")
        .size("50%")
        .no_audio()
    )
    command.on("end", lambda stdout, stderr: print("done"))
    await command.run()
"""

import asyncio
import logging
import os
from collections import deque
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..diagnostics import DiagnosticsParser
from ..errors import ExecutionError, UsageError
from ..events import CommandEvent, EventEmitter
from ..executable import get_ffmpeg_path
from .lowering import flatten_filters, lower_input, lower_output, parse_size, tokenize_options
from .process_manager import ProcessManager, ProcessResult, RunningProcess, parse_error
from .specs import (
    AudioSettings,
    Bitrate,
    Endpoint,
    ExplicitSize,
    FilePath,
    InputSpec,
    OutputSpec,
    PercentSize,
    PipeOptions,
    StreamEndpoint,
    Time,
    VideoSettings,
)
from .stream_bridge import NamedPipeStream, stream_input, stream_output

logger = logging.getLogger("ffcommand")


class CommandOptions(BaseModel):
    """Per-command configuration."""
    stderr_lines: int = Field(100, ge=0, description="Diagnostic lines kept; 0 keeps all")
    niceness: int = Field(0, ge=-20, le=19)
    timeout: Optional[float] = Field(None, gt=0)
    pipe_dir: Optional[str] = None


def _endpoint(target: Any, pipe_options: Optional[PipeOptions] = None) -> Endpoint:
    if isinstance(target, (str, os.PathLike)):
        return FilePath(os.fspath(target))
    return StreamEndpoint(target, pipe_options or PipeOptions())


class FFmpegCommand(EventEmitter):
    """Builder for a single ffmpeg invocation.

    A command can be run once. Listeners registered with :meth:`on`
    receive the notifications listed in :class:`CommandEvent`.
    """

    def __init__(
        self,
        options: Optional[CommandOptions] = None,
        process_manager: Optional[ProcessManager] = None,
    ):
        super().__init__()
        self.options = options or CommandOptions()
        self.process_manager = process_manager or ProcessManager()
        self._inputs: list[InputSpec] = []
        self._outputs: list[OutputSpec] = []
        self._input_index: Optional[int] = None
        self._output_index: Optional[int] = None
        self._bridges: list[NamedPipeStream] = []
        self._stderr_lines: deque[str] = deque(maxlen=self.options.stderr_lines or None)
        self._process: Optional[RunningProcess] = None
        self._ran = False

    @property
    def inputs(self) -> list[InputSpec]:
        return list(self._inputs)

    @property
    def outputs(self) -> list[OutputSpec]:
        return list(self._outputs)

    @property
    def stderr_lines(self) -> list[str]:
        """Most recent diagnostic lines of the current run."""
        return list(self._stderr_lines)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def input(self, source) -> "FFmpegCommand":
        """Add an input: a file path / URL, or a readable stream."""
        self._inputs.append(InputSpec(source=_endpoint(source)))
        self._input_index = len(self._inputs) - 1
        return self

    def _current_input(self) -> InputSpec:
        if self._input_index is None or not 0 <= self._input_index < len(self._inputs):
            raise UsageError("No input added. Please add an input")
        return self._inputs[self._input_index]

    def input_format(self, fmt: str) -> "FFmpegCommand":
        self._current_input().format = fmt
        return self

    def input_fps(self, fps: float) -> "FFmpegCommand":
        self._current_input().fps = fps
        return self

    def native(self) -> "FFmpegCommand":
        """Read the input at its native frame rate (``-re``)."""
        self._current_input().native = True
        return self

    def seek_input(self, time: Time) -> "FFmpegCommand":
        self._current_input().start_time = time
        return self

    def loop(self, length: Any = None) -> "FFmpegCommand":
        """Loop the input forever; limit the result with :meth:`duration`."""
        if length:
            raise UsageError("Please specify loop output duration on the output instead")
        self._current_input().loop = True
        return self

    def input_options(self, *options: str | list[str]) -> "FFmpegCommand":
        """Append raw options placed before the input."""
        spec = self._current_input()
        spec.extra_options.extend(tokenize_options(*options))
        return self

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def output(self, destination, pipe_options: Optional[PipeOptions] = None) -> "FFmpegCommand":
        """Add an output: a file path / URL, or a writable stream."""
        self._outputs.append(OutputSpec(destination=_endpoint(destination, pipe_options)))
        self._output_index = len(self._outputs) - 1
        return self

    def _current_output(self) -> OutputSpec:
        if self._output_index is None or not 0 <= self._output_index < len(self._outputs):
            raise UsageError("No output added. Please add an output")
        return self._outputs[self._output_index]

    def output_options(self, *options: str | list[str]) -> "FFmpegCommand":
        """Append raw options placed right before the output destination."""
        spec = self._current_output()
        spec.extra_options.extend(tokenize_options(*options))
        return self

    def duration(self, duration: Time) -> "FFmpegCommand":
        self._current_output().duration = duration
        return self

    def seek(self, start: Time) -> "FFmpegCommand":
        self._current_output().start_time = start
        return self

    def format(self, fmt: str) -> "FFmpegCommand":
        self._current_output().format = fmt
        return self

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def no_audio(self) -> "FFmpegCommand":
        self._current_output().audio = None
        return self

    def _audio(self) -> AudioSettings:
        audio = self._current_output().audio
        if audio is None:
            raise UsageError("Audio disabled")
        return audio

    def audio_codec(self, codec: str) -> "FFmpegCommand":
        self._audio().codec = codec
        return self

    def audio_bitrate(self, bitrate: Bitrate) -> "FFmpegCommand":
        self._audio().bitrate = bitrate
        return self

    def audio_channels(self, count: int) -> "FFmpegCommand":
        self._audio().channels = count
        return self

    def audio_frequency(self, freq: int) -> "FFmpegCommand":
        self._audio().frequency = freq
        return self

    def audio_quality(self, quality: float) -> "FFmpegCommand":
        self._audio().quality = quality
        return self

    def audio_filters(self, *filters) -> "FFmpegCommand":
        self._audio().filters.extend(flatten_filters(filters))
        return self

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    def no_video(self) -> "FFmpegCommand":
        self._current_output().video = None
        return self

    def _video(self) -> VideoSettings:
        video = self._current_output().video
        if video is None:
            raise UsageError("Video disabled")
        return video

    def video_codec(self, codec: str) -> "FFmpegCommand":
        self._video().codec = codec
        return self

    def video_bitrate(self, bitrate: Bitrate) -> "FFmpegCommand":
        self._video().bitrate = bitrate
        return self

    def fps(self, fps: float) -> "FFmpegCommand":
        self._video().fps = fps
        return self

    def frames(self, count: int) -> "FFmpegCommand":
        self._video().frames = count
        return self

    def size(self, size: str | ExplicitSize | PercentSize) -> "FFmpegCommand":
        """Scale the output: ``"1280x720"``, ``"1280x?"``, ``"?x720"`` or ``"50%"``."""
        video = self._video()
        video.size = size if isinstance(size, (ExplicitSize, PercentSize)) else parse_size(size)
        return self

    def video_filters(self, *filters) -> "FFmpegCommand":
        self._video().filters.extend(flatten_filters(filters))
        return self

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _endpoint_url(self, endpoint: Endpoint, is_input: bool) -> str:
        if isinstance(endpoint, FilePath):
            return endpoint.path
        if is_input:
            bridge = stream_input(endpoint.stream, directory=self.options.pipe_dir)
        else:
            bridge = stream_output(endpoint.stream, endpoint.pipe_options, directory=self.options.pipe_dir)
        self._bridges.append(bridge)
        return bridge.url

    def _build_args(self) -> list[str]:
        args: list[str] = []
        try:
            for spec in self._inputs:
                args.extend(lower_input(spec, self._endpoint_url(spec.source, is_input=True)))
            for spec in self._outputs:
                args.extend(lower_output(spec, self._endpoint_url(spec.destination, is_input=False)))
        except Exception:
            self._close_bridges()
            raise
        return args

    def _close_bridges(self) -> None:
        for bridge in self._bridges:
            bridge.close()

    def _process_stderr(self, line: str, parser: DiagnosticsParser) -> None:
        self.emit(CommandEvent.STDERR, line)
        # deque(maxlen=...) drops the oldest lines
        self._stderr_lines.append(line)
        for event, payload in parser.feed(line):
            self.emit(event, payload)

    def run(self, cancel: Optional[asyncio.Event] = None) -> "asyncio.Task[ProcessResult]":
        """Build the argument vector and start ffmpeg.

        Must be called from a running event loop. Usage errors and endpoint
        bind failures are raised here; process failures are reported
        through the ``error`` notification and by the returned task.

        Args:
            cancel: Event that terminates the process when set.

        Returns:
            Task resolving to a ProcessResult, or raising ExecutionError.
        """
        loop = asyncio.get_running_loop()
        if self._ran:
            raise UsageError("This instance is already run")
        if not self._inputs:
            raise UsageError("No inputs specified")
        if not self._outputs:
            raise UsageError("No outputs specified")
        self._ran = True

        args = self._build_args()
        task = loop.create_task(self._execute(args, cancel))
        task.add_done_callback(_retrieve_exception)
        return task

    async def _execute(self, args: list[str], cancel: Optional[asyncio.Event]) -> ProcessResult:
        parser = DiagnosticsParser()
        try:
            try:
                self._process = await self.process_manager.spawn(
                    get_ffmpeg_path(),
                    args,
                    cancel=cancel,
                    timeout=self.options.timeout,
                    niceness=self.options.niceness,
                )
                self.emit(CommandEvent.START, self._process.command_line)
                async for line in self._process.stderr_lines():
                    self._process_stderr(line, parser)
                return_code = await self._process.wait()
            except asyncio.CancelledError:
                if self._process is not None:
                    self._process.terminate()
                error = ExecutionError(
                    "ffmpeg was cancelled", cancelled=True,
                    command=self._process.command_line if self._process else "",
                )
                self._fail(error)
                if self._process is not None:
                    await self._process.reap()
                raise
            except ExecutionError as error:
                self._fail(error)
                raise
        finally:
            self._close_bridges()

        stderr = "\n".join(self._stderr_lines)
        self.emit(CommandEvent.END, "", stderr)
        return ProcessResult(
            success=True,
            return_code=return_code,
            stdout="",
            stderr=stderr,
            command=self._process.command_line,
        )

    def _fail(self, error: ExecutionError) -> None:
        error.stderr = "\n".join(self._stderr_lines)
        if error.stderr and not (error.cancelled or error.timed_out):
            error.args = (f"{error.args[0]}: {parse_error(error.stderr)}",)
        self.emit(CommandEvent.ERROR, error, "", error.stderr)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Failures are delivered through the "error" notification
    if not task.cancelled():
        task.exception()
