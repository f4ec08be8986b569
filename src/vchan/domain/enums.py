"""Domain enums for vchan.

This module contains enums shared by the ffmpeg command layer, the playback
settings calculator and configuration loading.
"""

from enum import Enum


class HardwareAccelerationKind(Enum):
    """Hardware target used for decoding, filtering and encoding.

    The set is closed: every per-kind table in vchan.ffmpeg.capabilities is
    checked for exhaustiveness at import time, so adding a member here forces
    each of them to be revisited.
    """

    NONE = "none"  # Software-only processing
    QSV = "qsv"  # Intel Quick Sync Video
    NVENC = "nvenc"  # NVIDIA NVENC/NVDEC via CUDA
    VAAPI = "vaapi"  # VA-API (Linux Intel/AMD)


class VideoScanKind(Enum):
    """Scan type of a source video stream."""

    UNKNOWN = "unknown"
    PROGRESSIVE = "progressive"
    INTERLACED = "interlaced"
