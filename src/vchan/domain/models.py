"""Domain models for vchan.

These value objects flow between the playback settings calculator, the
filter graph composer, the command builder and the process supervisor.
Optional numeric settings use None for "absent"; when present they must be
positive, so a zero never reaches the command line.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from math import gcd
from types import MappingProxyType

from .enums import HardwareAccelerationKind, VideoScanKind


def _require_positive(name: str, value: int | None) -> None:
    if value is not None and value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class DisplaySize:
    """Width and height of a video frame in pixels."""

    width: int
    height: int

    def __post_init__(self) -> None:
        """Validate dimensions."""
        _require_positive("width", self.width)
        _require_positive("height", self.height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def is_odd_size(self) -> bool:
        """True if either dimension is odd (most encoders reject this)."""
        return self.width % 2 == 1 or self.height % 2 == 1

    def is_same_size_as(self, other: DisplaySize) -> bool:
        """Check whether both dimensions match."""
        return self.width == other.width and self.height == other.height

    def is_larger_than(self, other: DisplaySize) -> bool:
        """Check whether either dimension exceeds the other size."""
        return self.width > other.width or self.height > other.height

    def scale_to_fit(
        self, target: DisplaySize, sample_aspect_ratio: tuple[int, int] = (1, 1)
    ) -> DisplaySize:
        """Compute the largest size inside target that keeps the display aspect.

        The display aspect is the frame aspect corrected by the sample
        (pixel) aspect ratio, so anamorphic sources come out with square
        pixels. Both dimensions are rounded down to even values.

        Args:
            target: Bounding size (typically the channel resolution).
            sample_aspect_ratio: Pixel aspect as (numerator, denominator).

        Returns:
            Scaled size that fits within target.
        """
        sar_num, sar_den = sample_aspect_ratio
        p = self.width * sar_num
        q = self.height * sar_den
        divisor = gcd(p, q)
        p //= divisor
        q //= divisor

        width = target.width
        height = width * q // p
        if height > target.height:
            height = target.height
            width = height * p // q

        width = max(2, width - width % 2)
        height = max(2, height - height % 2)
        return DisplaySize(width, height)


@dataclass(frozen=True)
class PlaybackSettings:
    """Codec and rate policy rendered into the output section of a command.

    Bitrates and buffer sizes are in kbit/s, the sample rate in kHz.
    """

    video_codec: str
    audio_codec: str
    video_bitrate_kbps: int | None = None
    video_buffer_size_kbps: int | None = None
    audio_bitrate_kbps: int | None = None
    audio_buffer_size_kbps: int | None = None
    audio_channels: int | None = None
    audio_sample_rate_khz: int | None = None

    def __post_init__(self) -> None:
        """Validate optional numeric fields."""
        _require_positive("video_bitrate_kbps", self.video_bitrate_kbps)
        _require_positive("video_buffer_size_kbps", self.video_buffer_size_kbps)
        _require_positive("audio_bitrate_kbps", self.audio_bitrate_kbps)
        _require_positive("audio_buffer_size_kbps", self.audio_buffer_size_kbps)
        _require_positive("audio_channels", self.audio_channels)
        _require_positive("audio_sample_rate_khz", self.audio_sample_rate_khz)


@dataclass(frozen=True)
class ComplexFilterResult:
    """A composed filter graph and the pads that leave it."""

    graph_expression: str
    video_pad_label: str
    audio_pad_label: str


@dataclass(frozen=True)
class ProcessDefinition:
    """Ready-to-launch ffmpeg invocation.

    The process is always started without a shell; arguments are passed
    exactly as accumulated.
    """

    executable_path: str
    arguments: tuple[str, ...]
    environment_additions: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    stdout_redirected: bool = True
    stderr_redirected: bool = False

    @property
    def command(self) -> list[str]:
        """Full argv including the executable."""
        return [self.executable_path, *self.arguments]


@dataclass(frozen=True)
class FFmpegProfile:
    """Transcode policy attached to a channel.

    This dataclass is immutable (frozen); profiles are loaded from YAML via
    vchan.config.profiles and shared between channels.
    """

    name: str
    resolution: DisplaySize
    thread_count: int = 4
    transcode: bool = True
    hardware_acceleration: HardwareAccelerationKind = HardwareAccelerationKind.NONE
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    normalize_resolution: bool = True
    normalize_video_codec: bool = True
    normalize_audio_codec: bool = True
    normalize_audio: bool = True
    video_bitrate: int | None = 2000
    video_buffer_size: int | None = 4000
    audio_bitrate: int | None = 192
    audio_buffer_size: int | None = 50
    audio_channels: int | None = 2
    audio_sample_rate: int | None = 48

    def __post_init__(self) -> None:
        """Validate profile values."""
        if not self.name or not self.name.strip():
            raise ValueError("profile name is required")
        if self.thread_count < 0:
            raise ValueError(
                f"thread_count must be non-negative, got {self.thread_count}"
            )
        if not isinstance(self.hardware_acceleration, HardwareAccelerationKind):
            raise ValueError(
                f"hardware_acceleration must be a HardwareAccelerationKind, "
                f"got {type(self.hardware_acceleration).__name__}"
            )
        _require_positive("video_bitrate", self.video_bitrate)
        _require_positive("video_buffer_size", self.video_buffer_size)
        _require_positive("audio_bitrate", self.audio_bitrate)
        _require_positive("audio_buffer_size", self.audio_buffer_size)
        _require_positive("audio_channels", self.audio_channels)
        _require_positive("audio_sample_rate", self.audio_sample_rate)


@dataclass(frozen=True)
class Channel:
    """A virtual broadcast channel."""

    number: str
    name: str
    ffmpeg_profile: FFmpegProfile


@dataclass(frozen=True)
class MediaVersion:
    """Stream attributes of a playable media file, as reported by the library."""

    width: int
    height: int
    duration: timedelta
    video_codec: str | None = None
    audio_codec: str | None = None
    sample_aspect_ratio: str = "1:1"
    video_scan_kind: VideoScanKind = VideoScanKind.UNKNOWN

    @property
    def display_size(self) -> DisplaySize:
        return DisplaySize(self.width, self.height)

    @property
    def sample_aspect_ratio_parts(self) -> tuple[int, int]:
        """Parse "N:D"; missing, malformed or zero ratios count as square."""
        num_str, sep, den_str = self.sample_aspect_ratio.partition(":")
        if not sep:
            return (1, 1)
        try:
            num, den = int(num_str), int(den_str)
        except ValueError:
            return (1, 1)
        if num <= 0 or den <= 0:
            return (1, 1)
        return (num, den)

    @property
    def is_anamorphic(self) -> bool:
        num, den = self.sample_aspect_ratio_parts
        return num != den


@dataclass
class TranscodePlan:
    """Builder decisions for one playout item.

    Produced by vchan.ffmpeg.playback.calculate_settings and consumed by
    FFmpegProcessService when driving an FFmpegProcessBuilder.
    """

    playback: PlaybackSettings
    thread_count: int = 1
    hardware_acceleration: HardwareAccelerationKind = HardwareAccelerationKind.NONE
    realtime_output: bool = True
    stream_seek: timedelta | None = None
    format_flags: tuple[str, ...] = ()
    scaled_size: DisplaySize | None = None
    pad_to_desired_resolution: bool = False
    deinterlace: bool = False
    audio_duration: timedelta | None = None

    @property
    def needs_filter_stages(self) -> bool:
        """True if any composer stage will be registered."""
        return (
            self.scaled_size is not None
            or self.pad_to_desired_resolution
            or self.deinterlace
            or self.audio_duration is not None
        )
