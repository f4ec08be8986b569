"""Domain models and enums for vchan.

This package contains the value objects shared across the ffmpeg command
layer and its callers:

- Frame and rate types: DisplaySize, PlaybackSettings
- Builder outputs: ComplexFilterResult, ProcessDefinition
- Collaborator values: Channel, MediaVersion, FFmpegProfile
- Decision record: TranscodePlan
- Enums: HardwareAccelerationKind, VideoScanKind

Usage:
    from vchan.domain import DisplaySize, HardwareAccelerationKind
"""

from .enums import HardwareAccelerationKind, VideoScanKind
from .models import (
    Channel,
    ComplexFilterResult,
    DisplaySize,
    FFmpegProfile,
    MediaVersion,
    PlaybackSettings,
    ProcessDefinition,
    TranscodePlan,
)

__all__ = [
    # Models
    "Channel",
    "ComplexFilterResult",
    "DisplaySize",
    "FFmpegProfile",
    "MediaVersion",
    "PlaybackSettings",
    "ProcessDefinition",
    "TranscodePlan",
    # Enums
    "HardwareAccelerationKind",
    "VideoScanKind",
]
