"""Lowering of input/output settings into ffmpeg argument vectors.

ffmpeg options apply to the next input (``-i``) or output path that follows
them, so every function here returns its tokens in the exact order they
have to appear on the command line.
"""

import math
import shlex
from collections.abc import Iterable, Mapping

from ..errors import UsageError
from .specs import (
    AudioSettings,
    ExplicitSize,
    Filter,
    FilterSpec,
    InputSpec,
    OutputSpec,
    PercentSize,
    SizeSpec,
    VideoSettings,
)


def format_value(value) -> str:
    """Render a number or string option value."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def tokenize_options(*options) -> list[str]:
    """Split free-form option strings into argv tokens.

    Accepts strings and (nested) lists of strings; every string is split
    with shell quoting rules.
    """
    tokens: list[str] = []
    for option in options:
        if isinstance(option, str):
            tokens.extend(shlex.split(option))
        else:
            tokens.extend(tokenize_options(*option))
    return tokens


def flatten_filters(filters: Iterable) -> list[FilterSpec]:
    """Flatten filter arguments into a list of strings and Filter objects."""
    flat: list[FilterSpec] = []
    for item in filters:
        if isinstance(item, (str, Filter)):
            flat.append(item)
        elif isinstance(item, Mapping):
            flat.append(Filter(filter=item["filter"], options=item.get("options")))
        else:
            flat.extend(flatten_filters(item))
    return flat


def filters_to_string(filters: Iterable[FilterSpec]) -> str:
    """Join filters into a single comma separated filter chain."""
    return ",".join(f if isinstance(f, str) else f.to_string() for f in filters)


def parse_size(size: str) -> SizeSpec:
    """Parse ``"WxH"``, ``"Wx?"``, ``"?xH"`` or ``"N%"``.

    Raises:
        UsageError: If the size is malformed.
    """
    size = size.strip()
    if size.endswith("%"):
        try:
            percent = float(size[:-1])
        except ValueError:
            raise UsageError(f"Invalid size: {size}") from None
        if not math.isfinite(percent) or percent <= 0:
            raise UsageError(f"Invalid size: {size}")
        return PercentSize(percent)

    width_str, sep, height_str = size.partition("x")
    if not sep or not width_str or not height_str:
        raise UsageError(f"Invalid size: {size}")

    width = _parse_dimension("width", width_str)
    height = _parse_dimension("height", height_str)
    if width is None and height is None:
        raise UsageError("Width and height can't both be unknown")
    return ExplicitSize(width=width, height=height)


def _parse_dimension(name: str, value: str):
    if value == "?":
        return None
    if not value.isdecimal() or int(value) <= 0:
        raise UsageError(f"Invalid {name}: {value}")
    return int(value)


def scale_filter(size: SizeSpec) -> Filter:
    """Build the ``scale`` filter for a size.

    Percentage scaling rounds both sides down to an even number; an unset
    explicit side becomes ``-2`` (keep aspect ratio, even result).
    """
    if isinstance(size, PercentSize):
        factor = format_value(size.percent / 100)
        return Filter("scale", {
            "w": f"trunc(iw*{factor}/2)*2",
            "h": f"trunc(ih*{factor}/2)*2",
        })
    return Filter("scale", {
        "w": size.width if size.width is not None else "-2",
        "h": size.height if size.height is not None else "-2",
    })


def lower_input(spec: InputSpec, url: str) -> list[str]:
    """Tokens for one input, ending with ``-i <url>``."""
    args = list(spec.extra_options)
    if spec.format is not None:
        args.extend(["-f", spec.format])
    if spec.fps is not None:
        args.extend(["-r", format_value(spec.fps)])
    if spec.native:
        args.append("-re")
    if spec.start_time is not None:
        args.extend(["-ss", format_value(spec.start_time)])
    if spec.loop:
        args.extend(["-loop", "-1"])
    args.extend(["-i", url])
    return args


def lower_audio(audio: AudioSettings | None) -> list[str]:
    if audio is None:
        return ["-an"]

    args: list[str] = []
    if audio.codec is not None:
        args.extend(["-c:a", audio.codec])
    if audio.bitrate is not None:
        args.extend(["-b:a", format_value(audio.bitrate)])
    if audio.channels is not None:
        args.extend(["-ac", format_value(audio.channels)])
    if audio.frequency is not None:
        args.extend(["-ar", format_value(audio.frequency)])
    if audio.quality is not None:
        args.extend(["-q:a", format_value(audio.quality)])
    if audio.filters:
        args.extend(["-af", filters_to_string(audio.filters)])
    return args


def lower_video(video: VideoSettings | None) -> list[str]:
    if video is None:
        return ["-vn"]

    args: list[str] = []
    if video.codec is not None:
        args.extend(["-c:v", video.codec])
    if video.bitrate is not None:
        args.extend(["-b:v", format_value(video.bitrate)])
    if video.fps is not None:
        args.extend(["-r", format_value(video.fps)])
    if video.frames is not None:
        args.extend(["-frames:v", format_value(video.frames)])

    filters = list(video.filters)
    if video.size is not None:
        filters.append(scale_filter(video.size))
    if filters:
        args.extend(["-vf", filters_to_string(filters)])
    return args


def lower_output(spec: OutputSpec, url: str) -> list[str]:
    """Tokens for one output, ending with the destination ``url``."""
    args: list[str] = []
    if spec.format is not None:
        args.extend(["-f", spec.format])
    if spec.start_time is not None:
        args.extend(["-ss", format_value(spec.start_time)])
    if spec.duration is not None:
        args.extend(["-t", format_value(spec.duration)])
    args.extend(lower_audio(spec.audio))
    args.extend(lower_video(spec.video))
    args.extend(spec.extra_options)
    args.append(url)
    return args
