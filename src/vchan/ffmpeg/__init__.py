"""ffmpeg command construction for channel streams.

- capabilities: per-acceleration-kind flags, decoders and filter names
- filters: ComplexFilterBuilder, the -filter_complex composer
- command: FFmpegProcessBuilder, the argument-vector builder
- playback: calculate_settings, profile/media decisions for a playout item
- service: FFmpegProcessService, ready-made invocations and launching

Usage:
    from vchan.ffmpeg import FFmpegProcessBuilder

    definition = (
        FFmpegProcessBuilder("/usr/bin/ffmpeg")
        .with_threads(4)
        .with_input("/media/show.mkv")
        .with_scaling(DisplaySize(1280, 720))
        .with_composed_filter()
        .with_playback_args(settings)
        .with_format("mpegts")
        .with_pipe()
        .build()
    )
"""

from vchan.ffmpeg import capabilities
from vchan.ffmpeg.command import FFmpegProcessBuilder
from vchan.ffmpeg.filters import ComplexFilterBuilder, FilterStage, StageKind
from vchan.ffmpeg.playback import calculate_error_settings, calculate_settings
from vchan.ffmpeg.service import (
    FFmpegProcessService,
    ProcessErrorKind,
    ProcessResult,
)

__all__ = [
    "ComplexFilterBuilder",
    "FFmpegProcessBuilder",
    "FFmpegProcessService",
    "FilterStage",
    "ProcessErrorKind",
    "ProcessResult",
    "StageKind",
    "calculate_error_settings",
    "calculate_settings",
    "capabilities",
]
