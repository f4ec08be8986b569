"""Playback settings calculation for playout items.

Decides, from a channel's FFmpegProfile and the attributes of the media
being played, which builder features a transcode needs: seek offset,
scaling, letterboxing, deinterlacing, audio alignment and the codec/rate
policy for the output.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from vchan.domain import (
    DisplaySize,
    FFmpegProfile,
    MediaVersion,
    PlaybackSettings,
    TranscodePlan,
    VideoScanKind,
)

logger = logging.getLogger(__name__)

COMMON_FORMAT_FLAGS: tuple[str, ...] = ("+genpts", "+discardcorrupt", "+igndts")

COPY_CODEC = "copy"

ERROR_VIDEO_ENCODER = "libx264"
ERROR_AUDIO_ENCODER = "aac"


# Software encoders whose name differs from the codec they produce
SOFTWARE_ENCODER_CODECS: dict[str, str] = {
    "libx264": "h264",
    "libx265": "hevc",
    "libvpx-vp9": "vp9",
    "libsvtav1": "av1",
    "libfdk_aac": "aac",
    "libmp3lame": "mp3",
    "libopus": "opus",
}

HARDWARE_ENCODER_SUFFIXES = ("_nvenc", "_qsv", "_vaapi")


def codec_for_encoder(encoder: str) -> str:
    """Map an encoder name to the codec name ffprobe reports for its output.

    Example:
        >>> codec_for_encoder("h264_nvenc")
        'h264'
    """
    name = encoder.casefold()
    if name in SOFTWARE_ENCODER_CODECS:
        return SOFTWARE_ENCODER_CODECS[name]
    for suffix in HARDWARE_ENCODER_SUFFIXES:
        if name.endswith(suffix):
            return name.removesuffix(suffix)
    return name


def _codec_matches(profile_codec: str, source_codec: str | None) -> bool:
    if source_codec is None:
        return False
    return codec_for_encoder(profile_codec) == source_codec.casefold()


def need_to_scale(profile: FFmpegProfile, version: MediaVersion) -> bool:
    """Check whether the source must be scaled before encoding.

    Scaling is needed when normalizing to a different size (or away from
    non-square pixels), when the source is larger than the channel
    resolution, or when the source has odd dimensions.
    """
    source = version.display_size
    is_incorrect_size = version.is_anamorphic or not source.is_same_size_as(
        profile.resolution
    )
    return (
        (profile.normalize_resolution and is_incorrect_size)
        or source.is_larger_than(profile.resolution)
        or source.is_odd_size
    )


def calculate_scaled_size(profile: FFmpegProfile, version: MediaVersion) -> DisplaySize:
    """Largest aspect-preserving size that fits the channel resolution."""
    return version.display_size.scale_to_fit(
        profile.resolution, version.sample_aspect_ratio_parts
    )


def need_to_normalize_video_codec(
    profile: FFmpegProfile, version: MediaVersion
) -> bool:
    return profile.normalize_video_codec and not _codec_matches(
        profile.video_codec, version.video_codec
    )


def need_to_normalize_audio_codec(
    profile: FFmpegProfile, version: MediaVersion
) -> bool:
    return profile.normalize_audio_codec and not _codec_matches(
        profile.audio_codec, version.audio_codec
    )


def calculate_settings(
    profile: FFmpegProfile,
    version: MediaVersion,
    start: datetime,
    now: datetime,
    realtime_output: bool = True,
) -> TranscodePlan:
    """Calculate builder decisions for one playout item.

    Args:
        profile: The channel's transcode profile.
        version: Attributes of the media being played.
        start: When the playout item was scheduled to start.
        now: Current time; joining late seeks into the item.
        realtime_output: Throttle output to wall-clock speed.

    Returns:
        TranscodePlan describing which builder calls to make.
    """
    seek = now - start
    stream_seek = seek if seek > timedelta(0) else None

    if not profile.transcode:
        logger.debug("Profile %s does not transcode; copying streams", profile.name)
        return TranscodePlan(
            playback=PlaybackSettings(video_codec=COPY_CODEC, audio_codec=COPY_CODEC),
            thread_count=profile.thread_count,
            realtime_output=realtime_output,
            stream_seek=stream_seek,
            format_flags=COMMON_FORMAT_FLAGS,
        )

    scaled_size: DisplaySize | None = None
    if need_to_scale(profile, version):
        candidate = calculate_scaled_size(profile, version)
        if not candidate.is_same_size_as(version.display_size):
            scaled_size = candidate

    size_after_scaling = scaled_size or version.display_size
    pad_to_desired_resolution = (
        profile.normalize_resolution
        and not size_after_scaling.is_same_size_as(profile.resolution)
    )

    encode_video = (
        scaled_size is not None
        or pad_to_desired_resolution
        or need_to_normalize_video_codec(profile, version)
    )
    video_codec = profile.video_codec if encode_video else COPY_CODEC
    video_bitrate = profile.video_bitrate if encode_video else None
    video_buffer_size = profile.video_buffer_size if encode_video else None

    audio_codec = COPY_CODEC
    audio_bitrate: int | None = None
    audio_buffer_size: int | None = None
    audio_channels: int | None = None
    audio_sample_rate: int | None = None
    audio_duration: timedelta | None = None
    if need_to_normalize_audio_codec(profile, version):
        audio_codec = profile.audio_codec
        audio_bitrate = profile.audio_bitrate
        audio_buffer_size = profile.audio_buffer_size
        if profile.normalize_audio:
            audio_channels = profile.audio_channels
            audio_sample_rate = profile.audio_sample_rate
            # Input seek shortens the video; audio must end with it
            remaining = version.duration - (stream_seek or timedelta(0))
            audio_duration = remaining if remaining > timedelta(0) else None

    deinterlace = encode_video and version.video_scan_kind == VideoScanKind.INTERLACED

    plan = TranscodePlan(
        playback=PlaybackSettings(
            video_codec=video_codec,
            audio_codec=audio_codec,
            video_bitrate_kbps=video_bitrate,
            video_buffer_size_kbps=video_buffer_size,
            audio_bitrate_kbps=audio_bitrate,
            audio_buffer_size_kbps=audio_buffer_size,
            audio_channels=audio_channels,
            audio_sample_rate_khz=audio_sample_rate,
        ),
        thread_count=profile.thread_count,
        hardware_acceleration=profile.hardware_acceleration,
        realtime_output=realtime_output,
        stream_seek=stream_seek,
        format_flags=COMMON_FORMAT_FLAGS,
        scaled_size=scaled_size,
        pad_to_desired_resolution=pad_to_desired_resolution,
        deinterlace=deinterlace,
        audio_duration=audio_duration,
    )
    logger.debug(
        "Calculated playback settings",
        extra={
            "profile": profile.name,
            "scaled_size": str(scaled_size) if scaled_size else None,
            "pad": pad_to_desired_resolution,
            "deinterlace": deinterlace,
            "video_codec": video_codec,
            "audio_codec": audio_codec,
        },
    )
    return plan


def calculate_error_settings(profile: FFmpegProfile) -> PlaybackSettings:
    """Encoding policy for error slides.

    Slides are rendered in software (drawtext over a still image), so they
    always use software encoders at the profile's rates.
    """
    return PlaybackSettings(
        video_codec=ERROR_VIDEO_ENCODER,
        audio_codec=ERROR_AUDIO_ENCODER,
        video_bitrate_kbps=profile.video_bitrate,
        video_buffer_size_kbps=profile.video_buffer_size,
        audio_bitrate_kbps=profile.audio_bitrate,
        audio_buffer_size_kbps=profile.audio_buffer_size,
        audio_channels=profile.audio_channels,
        audio_sample_rate_khz=profile.audio_sample_rate,
    )
