"""Input, output and stream settings accumulated by the command builder."""

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..errors import UsageError

# Seconds, or "[[hh:]mm:]ss[.ms]"
Time = Union[int, float, str]

# Bits per second, or shorthand such as "128k" / "1M"
Bitrate = Union[int, float, str]


@dataclass
class Filter:
    """A named filter with its options.

    ``options`` may be a raw option string, a list of positional options or
    a mapping rendered as ``key=value`` pairs in insertion order.
    """
    filter: str
    options: Union[str, list, tuple, dict, None] = None

    def to_string(self) -> str:
        """Convert filter to FFMPEG filter string."""
        if self.options is None:
            return self.filter
        if isinstance(self.options, str):
            opts = self.options
        elif isinstance(self.options, dict):
            opts = ":".join(f"{k}={v}" for k, v in self.options.items())
        else:
            opts = ":".join(str(opt) for opt in self.options)
        return f"{self.filter}={opts}"


FilterSpec = Union[str, Filter]


@dataclass(frozen=True)
class ExplicitSize:
    """Target width and/or height; a missing side keeps the aspect ratio."""
    width: Optional[int] = None
    height: Optional[int] = None

    def __post_init__(self):
        if self.width is None and self.height is None:
            raise UsageError("Width and height can't both be unknown")
        for name, value in (("width", self.width), ("height", self.height)):
            if value is not None and value <= 0:
                raise UsageError(f"Invalid {name}: {value}")


@dataclass(frozen=True)
class PercentSize:
    """Scale both sides by a percentage of the input size."""
    percent: float

    def __post_init__(self):
        if not math.isfinite(self.percent) or self.percent <= 0:
            raise UsageError(f"Invalid size: {self.percent}%")


SizeSpec = Union[ExplicitSize, PercentSize]


@dataclass
class AudioSettings:
    codec: Optional[str] = None
    bitrate: Optional[Bitrate] = None
    channels: Optional[int] = None
    frequency: Optional[int] = None
    quality: Optional[float] = None
    filters: list[FilterSpec] = field(default_factory=list)


@dataclass
class VideoSettings:
    codec: Optional[str] = None
    bitrate: Optional[Bitrate] = None
    fps: Optional[float] = None
    frames: Optional[int] = None
    size: Optional[SizeSpec] = None
    filters: list[FilterSpec] = field(default_factory=list)


@dataclass(frozen=True)
class PipeOptions:
    """How a bridged output stream is driven.

    Attributes:
        end: Close the in-process stream once ffmpeg finishes writing.
    """
    end: bool = True


@dataclass(frozen=True)
class FilePath:
    path: str


@dataclass(frozen=True)
class StreamEndpoint:
    """An in-process stream reached by ffmpeg through a channel bridge."""
    stream: Any
    pipe_options: PipeOptions = field(default_factory=PipeOptions)


Endpoint = Union[FilePath, StreamEndpoint]


@dataclass
class InputSpec:
    source: Endpoint
    format: Optional[str] = None
    fps: Optional[float] = None
    native: bool = False
    start_time: Optional[Time] = None
    loop: bool = False
    extra_options: list[str] = field(default_factory=list)


@dataclass
class OutputSpec:
    """A single output.

    ``audio``/``video`` set to None means the track is disabled; a settings
    object with every field unset means "ffmpeg defaults".
    """
    destination: Endpoint
    audio: Optional[AudioSettings] = field(default_factory=AudioSettings)
    video: Optional[VideoSettings] = field(default_factory=VideoSettings)
    format: Optional[str] = None
    duration: Optional[Time] = None
    start_time: Optional[Time] = None
    extra_options: list[str] = field(default_factory=list)
