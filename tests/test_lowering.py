"""Tests for argument lowering and size parsing."""

import pytest

from ffcommand.errors import UsageError
from ffcommand.executor.lowering import (
    filters_to_string,
    flatten_filters,
    format_value,
    lower_audio,
    lower_input,
    lower_output,
    lower_video,
    parse_size,
    scale_filter,
    tokenize_options,
)
from ffcommand.executor.specs import (
    AudioSettings,
    ExplicitSize,
    FilePath,
    Filter,
    InputSpec,
    OutputSpec,
    PercentSize,
    VideoSettings,
)


class TestParseSize:
    """Tests for parse_size."""

    def test_width_and_height(self):
        assert parse_size("1280x720") == ExplicitSize(width=1280, height=720)

    def test_auto_height(self):
        assert parse_size("1280x?") == ExplicitSize(width=1280, height=None)

    def test_auto_width(self):
        assert parse_size("?x720") == ExplicitSize(width=None, height=720)

    def test_percent(self):
        assert parse_size("50%") == PercentSize(50)

    def test_fractional_percent(self):
        assert parse_size("12.5%") == PercentSize(12.5)

    @pytest.mark.parametrize("size", ["0%", "-10%", "inf%", "nan%", "abc%", "%"])
    def test_invalid_percent(self, size):
        with pytest.raises(UsageError, match="Invalid size"):
            parse_size(size)

    @pytest.mark.parametrize("size", ["abc", "1280", "x720", "1280x", ""])
    def test_missing_dimension(self, size):
        with pytest.raises(UsageError, match="Invalid size"):
            parse_size(size)

    def test_both_auto(self):
        with pytest.raises(UsageError, match="both be unknown"):
            parse_size("?x?")

    def test_zero_width(self):
        with pytest.raises(UsageError, match="Invalid width"):
            parse_size("0x100")

    def test_non_numeric_height(self):
        with pytest.raises(UsageError, match="Invalid height"):
            parse_size("100xabc")

    @pytest.mark.parametrize("size", ["\u00b2x720", "1280x\u00b2"])
    def test_non_decimal_digit(self, size):
        """Digit-like characters that int() rejects are usage errors."""
        with pytest.raises(UsageError, match="Invalid (width|height)"):
            parse_size(size)

    def test_extra_separator(self):
        with pytest.raises(UsageError, match="Invalid height"):
            parse_size("1x2x3")

    def test_explicit_size_rejects_both_missing(self):
        with pytest.raises(UsageError):
            ExplicitSize()


class TestFilters:
    """Tests for filter serialization."""

    def test_plain_filter(self):
        assert filters_to_string(["hflip"]) == "hflip"

    def test_raw_option_string(self):
        assert Filter("fade", "in:0:30").to_string() == "fade=in:0:30"

    def test_option_list(self):
        assert Filter("crop", [100, 100, 0, 0]).to_string() == "crop=100:100:0:0"

    def test_option_mapping_keeps_order(self):
        f = Filter("scale", {"w": 640, "h": "-2", "flags": "lanczos"})
        assert f.to_string() == "scale=w=640:h=-2:flags=lanczos"

    def test_no_options(self):
        assert Filter("vflip").to_string() == "vflip"

    def test_chain_is_comma_joined(self):
        chain = filters_to_string(["hflip", Filter("volume", "0.5"), "vflip"])
        assert chain == "hflip,volume=0.5,vflip"

    def test_flatten_nested_and_mappings(self):
        flat = flatten_filters(["a", ["b", {"filter": "c", "options": "1"}], (Filter("d"),)])
        assert flat == ["a", "b", Filter("c", "1"), Filter("d")]


class TestScaleFilter:
    """Tests for scale filter derivation."""

    def test_percent_uses_even_rounding(self):
        f = scale_filter(PercentSize(50))
        assert f.to_string() == "scale=w=trunc(iw*0.5/2)*2:h=trunc(ih*0.5/2)*2"

    def test_hundred_percent(self):
        f = scale_filter(PercentSize(100))
        assert f.to_string() == "scale=w=trunc(iw*1/2)*2:h=trunc(ih*1/2)*2"

    def test_explicit(self):
        assert scale_filter(ExplicitSize(1280, 720)).to_string() == "scale=w=1280:h=720"

    def test_auto_height_preserves_aspect(self):
        assert scale_filter(ExplicitSize(width=1280)).to_string() == "scale=w=1280:h=-2"

    def test_auto_width_preserves_aspect(self):
        assert scale_filter(ExplicitSize(height=720)).to_string() == "scale=w=-2:h=720"


class TestLowerInput:
    """Tests for lower_input ordering."""

    def test_file_only(self):
        assert lower_input(InputSpec(FilePath("in.mp4")), "in.mp4") == ["-i", "in.mp4"]

    def test_full_ordering(self):
        spec = InputSpec(
            source=FilePath("in.mp4"),
            format="mp4",
            fps=25,
            native=True,
            start_time="00:01:00",
            loop=True,
            extra_options=["-probesize", "32"],
        )
        assert lower_input(spec, "in.mp4") == [
            "-probesize", "32",
            "-f", "mp4",
            "-r", "25",
            "-re",
            "-ss", "00:01:00",
            "-loop", "-1",
            "-i", "in.mp4",
        ]

    def test_uses_given_url(self):
        args = lower_input(InputSpec(FilePath("ignored")), "unix:/tmp/x.sock")
        assert args[-2:] == ["-i", "unix:/tmp/x.sock"]


class TestLowerOutput:
    """Tests for audio/video blocks and output ordering."""

    def test_disabled_tracks(self):
        assert lower_audio(None) == ["-an"]
        assert lower_video(None) == ["-vn"]

    def test_default_tracks_emit_nothing(self):
        assert lower_audio(AudioSettings()) == []
        assert lower_video(VideoSettings()) == []

    def test_audio_block(self):
        audio = AudioSettings(
            codec="aac", bitrate="128k", channels=2, frequency=44100, quality=2,
            filters=["loudnorm", Filter("volume", {"volume": 0.5})],
        )
        assert lower_audio(audio) == [
            "-c:a", "aac",
            "-b:a", "128k",
            "-ac", "2",
            "-ar", "44100",
            "-q:a", "2",
            "-af", "loudnorm,volume=volume=0.5",
        ]

    def test_video_block_appends_scale(self):
        video = VideoSettings(
            codec="libx264", bitrate=1000000, fps=30, frames=100,
            size=ExplicitSize(width=640), filters=["hflip"],
        )
        assert lower_video(video) == [
            "-c:v", "libx264",
            "-b:v", "1000000",
            "-r", "30",
            "-frames:v", "100",
            "-vf", "hflip,scale=w=640:h=-2",
        ]

    def test_size_alone_creates_filter(self):
        assert lower_video(VideoSettings(size=PercentSize(50))) == [
            "-vf", "scale=w=trunc(iw*0.5/2)*2:h=trunc(ih*0.5/2)*2",
        ]

    def test_full_ordering(self):
        spec = OutputSpec(
            destination=FilePath("out.mkv"),
            audio=None,
            video=VideoSettings(codec="libx264"),
            format="matroska",
            duration=10,
            start_time=1.5,
            extra_options=["-movflags", "+faststart"],
        )
        assert lower_output(spec, "out.mkv") == [
            "-f", "matroska",
            "-ss", "1.5",
            "-t", "10",
            "-an",
            "-c:v", "libx264",
            "-movflags", "+faststart",
            "out.mkv",
        ]


class TestHelpers:
    """Tests for value formatting and option tokenizing."""

    def test_format_value(self):
        assert format_value(10) == "10"
        assert format_value(10.0) == "10"
        assert format_value(0.25) == "0.25"
        assert format_value("1M") == "1M"

    def test_tokenize_quoted(self):
        assert tokenize_options("-metadata title='My Movie'") == ["-metadata", "title=My Movie"]

    def test_tokenize_mixed(self):
        assert tokenize_options("-a 1", ["-b 2", "-c"]) == ["-a", "1", "-b", "2", "-c"]
