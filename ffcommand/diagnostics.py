"""Parsing of ffmpeg stderr diagnostics into structured notifications."""

import re
from typing import Optional

from .events import CodecData, CommandEvent, Progress

_INPUT_RE = re.compile(r"^Input #0, ([^ ]+), from ")
_DURATION_RE = re.compile(r"Duration: ([^,]+)")
_STREAM_RE = re.compile(r"Stream #0:\d+(?:\[\w+\])?(?:\(\w+\))?: (Audio|Video): (.*)$")
_CODEC_DONE_RE = re.compile(r"^(Output #\d+|Stream mapping:|Press \[q\])")

_FRAME_RE = re.compile(r"frame=\s*(\d+)")
_FPS_RE = re.compile(r"fps=\s*([\d.]+)")
_SIZE_RE = re.compile(r"size=\s*(\d+)\s*[kK]i?B")
_TIME_RE = re.compile(r"time=\s*(-?[\d:.]+)")
_BITRATE_RE = re.compile(r"bitrate=\s*([\d.]+)\s*kbits/s")


def parse_progress_line(line: str) -> Optional[Progress]:
    """Parse a stats line (``frame= ... time= ... bitrate= ...``).

    Returns:
        Progress, or None when the line carries no ``time=`` field.
    """
    time_match = _TIME_RE.search(line)
    if not time_match:
        return None

    progress = Progress(timemark=time_match.group(1))

    m = _FRAME_RE.search(line)
    if m:
        progress.frames = int(m.group(1))

    m = _FPS_RE.search(line)
    if m:
        progress.current_fps = float(m.group(1))

    m = _SIZE_RE.search(line)
    if m:
        progress.target_size = int(m.group(1))

    m = _BITRATE_RE.search(line)
    if m:
        progress.current_kbps = float(m.group(1))

    return progress


class DiagnosticsParser:
    """Turns stderr lines of one run into ``codecData``/``progress`` payloads.

    Codec data describes the first input only and is reported once, as soon
    as ffmpeg moves on from describing its inputs.
    """

    def __init__(self) -> None:
        self._codec: Optional[CodecData] = None
        self._codec_reported = False

    def feed(self, line: str) -> list[tuple[CommandEvent, object]]:
        line = line.strip()
        if not line:
            return []

        events: list[tuple[CommandEvent, object]] = []
        if not self._codec_reported:
            codec = self._feed_codec_line(line)
            if codec is not None:
                events.append((CommandEvent.CODEC_DATA, codec))

        if line.startswith("frame=") or line.startswith("size="):
            progress = parse_progress_line(line)
            if progress is not None:
                events.append((CommandEvent.PROGRESS, progress))

        return events

    def _feed_codec_line(self, line: str) -> Optional[CodecData]:
        m = _INPUT_RE.match(line)
        if m:
            self._codec = CodecData(format=m.group(1))
            return None

        if self._codec is None:
            return None

        if _CODEC_DONE_RE.match(line):
            self._codec_reported = True
            return self._codec

        m = _DURATION_RE.search(line)
        if m and line.startswith("Duration:"):
            self._codec.duration = m.group(1).strip()
            return None

        m = _STREAM_RE.search(line)
        if m:
            kind, description = m.group(1), m.group(2)
            details = [part.strip() for part in description.split(",")]
            # Only the first stream of each kind is described
            if kind == "Audio" and not self._codec.audio:
                self._codec.audio = details[0]
                self._codec.audio_details = details
            elif kind == "Video" and not self._codec.video:
                self._codec.video = details[0]
                self._codec.video_details = details

        return None
