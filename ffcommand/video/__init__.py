"""Media inspection helpers."""

from .analyzer import AudioStreamInfo, MediaAnalyzer, MediaMetadata, StreamInfo, VideoStreamInfo

__all__ = [
    "AudioStreamInfo",
    "MediaAnalyzer",
    "MediaMetadata",
    "StreamInfo",
    "VideoStreamInfo",
]
