"""Shared test fixtures for vchan."""

from datetime import timedelta
from pathlib import Path

import pytest

from vchan.config.models import FFmpegConfig, VChanConfig
from vchan.domain import (
    Channel,
    DisplaySize,
    FFmpegProfile,
    HardwareAccelerationKind,
    MediaVersion,
    PlaybackSettings,
)
from vchan.ffmpeg.command import FFmpegProcessBuilder

FFMPEG_PATH = "/usr/bin/ffmpeg"


@pytest.fixture
def ffmpeg_path() -> str:
    """Return a fixed ffmpeg path used across builder tests."""
    return FFMPEG_PATH


@pytest.fixture
def builder() -> FFmpegProcessBuilder:
    """Create a builder with reports disabled."""
    return FFmpegProcessBuilder(FFMPEG_PATH)


@pytest.fixture
def hd_profile() -> FFmpegProfile:
    """Software 1080p profile with default normalization."""
    return FFmpegProfile(name="hd", resolution=DisplaySize(1920, 1080))


@pytest.fixture
def qsv_profile() -> FFmpegProfile:
    """Quick Sync 720p profile."""
    return FFmpegProfile(
        name="qsv",
        resolution=DisplaySize(1280, 720),
        hardware_acceleration=HardwareAccelerationKind.QSV,
        video_codec="h264_qsv",
    )


@pytest.fixture
def channel(hd_profile: FFmpegProfile) -> Channel:
    """Channel 12 using the hd profile."""
    return Channel(number="12", name="Cartoons", ffmpeg_profile=hd_profile)


@pytest.fixture
def hd_version() -> MediaVersion:
    """A 1080p h264/aac file that already matches the hd profile."""
    return MediaVersion(
        width=1920,
        height=1080,
        duration=timedelta(minutes=22),
        video_codec="h264",
        audio_codec="aac",
    )


@pytest.fixture
def playback_settings() -> PlaybackSettings:
    """Settings with video bitrate and audio bitrate only."""
    return PlaybackSettings(
        video_codec="libx264",
        audio_codec="aac",
        video_bitrate_kbps=2000,
        audio_bitrate_kbps=192,
    )


@pytest.fixture
def vchan_config(tmp_path: Path) -> VChanConfig:
    """Config rooted in a temporary data directory."""
    return VChanConfig(ffmpeg=FFmpegConfig(), data_dir=tmp_path / "data")


@pytest.fixture
def media_file(tmp_path: Path) -> Path:
    """An empty, readable media file."""
    path = tmp_path / "episode.mkv"
    path.write_bytes(b"")
    return path
