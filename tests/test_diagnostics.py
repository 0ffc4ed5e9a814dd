"""Tests for ffmpeg diagnostics parsing."""

from ffcommand.diagnostics import DiagnosticsParser, parse_progress_line
from ffcommand.events import CodecData, CommandEvent, Progress

FFMPEG_BANNER = """\
ffmpeg version 6.1.1 Copyright (c) 2000-2023 the FFmpeg developers
  built with gcc 13 (GCC)
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':
  Metadata:
    major_brand     : isom
  Duration: 00:00:10.00, start: 0.000000, bitrate: 1205 kb/s
  Stream #0:0[0x1](und): Video: h264 (High) (avc1 / 0x31637661), yuv420p(progressive), 1280x720, 1000 kb/s, 30 fps, 30 tbr (default)
  Stream #0:1[0x2](und): Audio: aac (LC) (mp4a / 0x6134706D), 44100 Hz, stereo, fltp, 128 kb/s (default)
  Stream #0:2[0x3](und): Audio: ac3, 48000 Hz, 5.1(side), fltp, 384 kb/s
Stream mapping:
  Stream #0:0 -> #0:0 (h264 (native) -> h264 (libx264))
Press [q] to stop, [?] for help
Output #0, mp4, to 'out.mp4':
"""


def feed_all(parser, text):
    events = []
    for line in text.splitlines():
        events.extend(parser.feed(line))
    return events


class TestParseProgressLine:
    """Tests for parse_progress_line."""

    def test_full_stats_line(self):
        progress = parse_progress_line(
            "frame=  120 fps= 29.5 q=28.0 size=     512kB time=00:00:04.00 bitrate=1048.6kbits/s speed=0.98x"
        )
        assert progress == Progress(
            frames=120,
            current_fps=29.5,
            current_kbps=1048.6,
            target_size=512,
            timemark="00:00:04.00",
        )

    def test_kib_units(self):
        progress = parse_progress_line("size=    2048KiB time=00:01:00.50 bitrate= 279.6kbits/s speed=12x")
        assert progress.target_size == 2048
        assert progress.frames == 0
        assert progress.timemark == "00:01:00.50"

    def test_missing_fields_default(self):
        progress = parse_progress_line("frame=    1 fps=0.0 q=0.0 size=N/A time=00:00:00.04 bitrate=N/A")
        assert progress.frames == 1
        assert progress.target_size == 0
        assert progress.current_kbps == 0.0

    def test_no_time(self):
        assert parse_progress_line("frame=    1 fps=0.0") is None


class TestDiagnosticsParser:
    """Tests for codecData and progress extraction from a stderr stream."""

    def test_codec_data(self):
        events = feed_all(DiagnosticsParser(), FFMPEG_BANNER)
        assert len(events) == 1
        event, codec = events[0]
        assert event == CommandEvent.CODEC_DATA
        assert isinstance(codec, CodecData)
        assert codec.format == "mov,mp4,m4a,3gp,3g2,mj2"
        assert codec.duration == "00:00:10.00"
        assert codec.video == "h264 (High) (avc1 / 0x31637661)"
        assert codec.video_details[2] == "1280x720"
        # First audio stream only
        assert codec.audio == "aac (LC) (mp4a / 0x6134706D)"
        assert "44100 Hz" in codec.audio_details

    def test_codec_data_reported_once(self):
        parser = DiagnosticsParser()
        feed_all(parser, FFMPEG_BANNER)
        assert feed_all(parser, FFMPEG_BANNER) == []

    def test_no_codec_data_without_input(self):
        parser = DiagnosticsParser()
        assert feed_all(parser, "Stream mapping:\nOutput #0, mp4, to 'out.mp4':") == []

    def test_progress_events(self):
        parser = DiagnosticsParser()
        events = parser.feed("frame=   10 fps=0.0 q=0.0 size=       0kB time=00:00:00.33 bitrate=   0.0kbits/s")
        assert [event for event, _ in events] == [CommandEvent.PROGRESS]
        assert events[0][1].frames == 10

    def test_time_outside_stats_line_is_ignored(self):
        parser = DiagnosticsParser()
        assert parser.feed("[mp4 @ 0x55] time=00:00:01.00 something") == []

    def test_blank_lines(self):
        assert DiagnosticsParser().feed("   ") == []
