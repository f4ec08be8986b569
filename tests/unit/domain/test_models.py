"""Tests for domain value objects."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import timedelta

import pytest

from vchan.domain import (
    DisplaySize,
    FFmpegProfile,
    HardwareAccelerationKind,
    MediaVersion,
    PlaybackSettings,
    ProcessDefinition,
    TranscodePlan,
    VideoScanKind,
)


class TestDisplaySize:
    """Tests for DisplaySize."""

    def test_str_is_width_x_height(self) -> None:
        assert str(DisplaySize(1920, 1080)) == "1920x1080"

    @pytest.mark.parametrize("width,height", [(0, 1080), (1920, 0), (-2, 10)])
    def test_rejects_non_positive_dimensions(self, width: int, height: int) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            DisplaySize(width, height)

    def test_is_immutable(self) -> None:
        size = DisplaySize(1280, 720)
        with pytest.raises(FrozenInstanceError):
            size.width = 640  # type: ignore[misc]

    def test_odd_size_detection(self) -> None:
        assert DisplaySize(721, 480).is_odd_size
        assert DisplaySize(720, 481).is_odd_size
        assert not DisplaySize(720, 480).is_odd_size

    def test_same_size_and_larger_than(self) -> None:
        hd = DisplaySize(1920, 1080)
        assert hd.is_same_size_as(DisplaySize(1920, 1080))
        assert not hd.is_same_size_as(DisplaySize(1920, 1088))
        assert hd.is_larger_than(DisplaySize(1280, 720))
        assert DisplaySize(1920, 500).is_larger_than(DisplaySize(1280, 720))
        assert not DisplaySize(1280, 720).is_larger_than(hd)


class TestScaleToFit:
    """Tests for DisplaySize.scale_to_fit."""

    def test_same_aspect_fills_target(self) -> None:
        """16:9 into 16:9 uses the whole target."""
        assert DisplaySize(3840, 2160).scale_to_fit(
            DisplaySize(1920, 1080)
        ) == DisplaySize(1920, 1080)

    def test_four_by_three_is_pillarboxed(self) -> None:
        """4:3 into 16:9 keeps full height and narrows the width."""
        assert DisplaySize(640, 480).scale_to_fit(
            DisplaySize(1920, 1080)
        ) == DisplaySize(1440, 1080)

    def test_wide_source_is_letterboxed(self) -> None:
        """2.40:1 into 16:9 keeps full width and reduces height."""
        result = DisplaySize(1920, 800).scale_to_fit(DisplaySize(1280, 720))
        assert result.width == 1280
        assert result.height == 532

    def test_anamorphic_dvd_uses_display_aspect(self) -> None:
        """720x480 with 32:27 pixels displays at 16:9."""
        result = DisplaySize(720, 480).scale_to_fit(
            DisplaySize(1920, 1080), sample_aspect_ratio=(32, 27)
        )
        assert result == DisplaySize(1920, 1080)

    def test_result_is_even(self) -> None:
        result = DisplaySize(1001, 751).scale_to_fit(DisplaySize(1279, 719))
        assert result.width % 2 == 0
        assert result.height % 2 == 0
        assert result.width <= 1279
        assert result.height <= 719


class TestPlaybackSettings:
    """Tests for PlaybackSettings validation."""

    def test_optional_fields_default_to_none(self) -> None:
        settings = PlaybackSettings(video_codec="libx264", audio_codec="aac")
        assert settings.video_bitrate_kbps is None
        assert settings.audio_sample_rate_khz is None

    def test_rejects_zero_bitrate(self) -> None:
        with pytest.raises(ValueError, match="video_bitrate_kbps"):
            PlaybackSettings(
                video_codec="libx264", audio_codec="aac", video_bitrate_kbps=0
            )

    @pytest.mark.parametrize(
        "field_name", ["audio_channels", "audio_sample_rate_khz", "audio_buffer_size_kbps"]
    )
    def test_rejects_zero_audio_values(self, field_name: str) -> None:
        with pytest.raises(ValueError, match=field_name):
            PlaybackSettings(video_codec="copy", audio_codec="aac", **{field_name: 0})


class TestProcessDefinition:
    """Tests for ProcessDefinition."""

    def test_command_prepends_executable(self) -> None:
        definition = ProcessDefinition("/usr/bin/ffmpeg", ("-i", "in.mkv"))
        assert definition.command == ["/usr/bin/ffmpeg", "-i", "in.mkv"]

    def test_defaults(self) -> None:
        definition = ProcessDefinition("/usr/bin/ffmpeg", ())
        assert definition.stdout_redirected is True
        assert definition.stderr_redirected is False
        assert dict(definition.environment_additions) == {}

    def test_environment_is_read_only(self) -> None:
        definition = ProcessDefinition("/usr/bin/ffmpeg", ())
        with pytest.raises(TypeError):
            definition.environment_additions["X"] = "1"  # type: ignore[index]


class TestFFmpegProfile:
    """Tests for FFmpegProfile validation."""

    def test_defaults(self) -> None:
        profile = FFmpegProfile(name="hd", resolution=DisplaySize(1920, 1080))
        assert profile.hardware_acceleration is HardwareAccelerationKind.NONE
        assert profile.video_codec == "libx264"
        assert profile.audio_sample_rate == 48

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="name"):
            FFmpegProfile(name="  ", resolution=DisplaySize(1920, 1080))

    def test_negative_threads_rejected(self) -> None:
        with pytest.raises(ValueError, match="thread_count"):
            FFmpegProfile(
                name="hd", resolution=DisplaySize(1920, 1080), thread_count=-1
            )

    def test_acceleration_must_be_enum(self) -> None:
        with pytest.raises(ValueError, match="hardware_acceleration"):
            FFmpegProfile(
                name="hd",
                resolution=DisplaySize(1920, 1080),
                hardware_acceleration="qsv",  # type: ignore[arg-type]
            )


class TestMediaVersion:
    """Tests for MediaVersion derived properties."""

    def _version(self, sar: str) -> MediaVersion:
        return MediaVersion(
            width=720, height=480, duration=timedelta(minutes=1), sample_aspect_ratio=sar
        )

    def test_parses_sample_aspect_ratio(self) -> None:
        version = self._version("32:27")
        assert version.sample_aspect_ratio_parts == (32, 27)
        assert version.is_anamorphic

    @pytest.mark.parametrize("sar", ["", "abc", "0:1", "1:0", "16"])
    def test_malformed_ratio_counts_as_square(self, sar: str) -> None:
        version = self._version(sar)
        assert version.sample_aspect_ratio_parts == (1, 1)
        assert not version.is_anamorphic

    def test_display_size(self) -> None:
        assert self._version("1:1").display_size == DisplaySize(720, 480)

    def test_scan_kind_defaults_to_unknown(self) -> None:
        assert self._version("1:1").video_scan_kind is VideoScanKind.UNKNOWN


class TestTranscodePlan:
    """Tests for TranscodePlan.needs_filter_stages."""

    def test_no_stages(self) -> None:
        plan = TranscodePlan(playback=PlaybackSettings("copy", "copy"))
        assert not plan.needs_filter_stages

    def test_any_stage_counts(self) -> None:
        plan = TranscodePlan(
            playback=PlaybackSettings("libx264", "aac"),
            audio_duration=timedelta(seconds=5),
        )
        assert plan.needs_filter_stages
