"""Media inspection through ffprobe."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from ..errors import ExecutionError
from ..executable import get_ffprobe_path

logger = logging.getLogger("ffcommand")


class StreamInfo(BaseModel):
    """Information about a single stream."""
    index: int
    codec_name: str
    codec_type: str
    codec_long_name: Optional[str] = None
    bit_rate: Optional[int] = None
    duration: Optional[float] = None


class VideoStreamInfo(StreamInfo):
    width: int = 0
    height: int = 0
    pixel_format: Optional[str] = None
    frame_rate: Optional[float] = None
    nb_frames: Optional[int] = None


class AudioStreamInfo(StreamInfo):
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    channel_layout: Optional[str] = None


class MediaMetadata(BaseModel):
    """Container and stream metadata of a media file."""
    file_path: str
    format_name: str
    duration: Optional[float] = None
    bit_rate: Optional[int] = None
    size: Optional[int] = None
    video_streams: list[VideoStreamInfo] = []
    audio_streams: list[AudioStreamInfo] = []
    other_streams: list[StreamInfo] = []

    @property
    def primary_video(self) -> Optional[VideoStreamInfo]:
        return self.video_streams[0] if self.video_streams else None

    @property
    def primary_audio(self) -> Optional[AudioStreamInfo]:
        return self.audio_streams[0] if self.audio_streams else None


def _number(value, kind=int):
    """Convert an ffprobe string field, treating absent/"N/A" as None."""
    if value in (None, "", "N/A"):
        return None
    try:
        return kind(value)
    except (TypeError, ValueError):
        return None


def _frame_rate(value: Optional[str]) -> Optional[float]:
    if not value or "/" not in value:
        return _number(value, float)
    num, _, den = value.partition("/")
    try:
        return int(num) / int(den) if int(den) else None
    except ValueError:
        return None


class MediaAnalyzer:
    """Runs ffprobe and parses its JSON report."""

    def __init__(self, ffprobe_path: Optional[str] = None):
        """
        Args:
            ffprobe_path: ffprobe executable; defaults to the configured path
                at the time of each call.
        """
        self.ffprobe_path = ffprobe_path

    def analyze(self, path: str | Path) -> MediaMetadata:
        """Probe a media file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ExecutionError: If ffprobe cannot be started or fails.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Media file not found: {path}")

        cmd = [
            self.ffprobe_path or get_ffprobe_path(),
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]
        logger.debug("Probing %s", path)

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise ExecutionError(f"Failed to start {cmd[0]}: {e}", command=" ".join(cmd)) from e
        if result.returncode != 0:
            raise ExecutionError(
                f"ffprobe failed: {result.stderr.strip()}",
                return_code=result.returncode,
                command=" ".join(cmd),
                stderr=result.stderr,
            )

        return self.parse(str(path), json.loads(result.stdout or "{}"))

    def parse(self, file_path: str, data: dict) -> MediaMetadata:
        """Build MediaMetadata from ffprobe's ``-show_format -show_streams`` JSON."""
        fmt = data.get("format", {})
        metadata = MediaMetadata(
            file_path=file_path,
            format_name=fmt.get("format_name", "unknown"),
            duration=_number(fmt.get("duration"), float),
            bit_rate=_number(fmt.get("bit_rate")),
            size=_number(fmt.get("size")),
        )

        for stream in data.get("streams", []):
            common = dict(
                index=stream.get("index", 0),
                codec_name=stream.get("codec_name", "unknown"),
                codec_type=stream.get("codec_type", "unknown"),
                codec_long_name=stream.get("codec_long_name"),
                bit_rate=_number(stream.get("bit_rate")),
                duration=_number(stream.get("duration"), float),
            )
            if common["codec_type"] == "video":
                metadata.video_streams.append(VideoStreamInfo(
                    **common,
                    width=stream.get("width", 0),
                    height=stream.get("height", 0),
                    pixel_format=stream.get("pix_fmt"),
                    frame_rate=_frame_rate(stream.get("r_frame_rate")),
                    nb_frames=_number(stream.get("nb_frames")),
                ))
            elif common["codec_type"] == "audio":
                metadata.audio_streams.append(AudioStreamInfo(
                    **common,
                    sample_rate=_number(stream.get("sample_rate")),
                    channels=stream.get("channels"),
                    channel_layout=stream.get("channel_layout"),
                ))
            else:
                metadata.other_streams.append(StreamInfo(**common))

        return metadata
