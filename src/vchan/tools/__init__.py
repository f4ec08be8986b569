"""External tool discovery for vchan."""

from vchan.tools.detection import (
    HWACCEL_NAMES,
    detect_hardware_accelerations,
    find_ffmpeg,
    parse_hwaccels,
    require_ffmpeg,
    validate_hardware_acceleration,
)

__all__ = [
    "HWACCEL_NAMES",
    "detect_hardware_accelerations",
    "find_ffmpeg",
    "parse_hwaccels",
    "require_ffmpeg",
    "validate_hardware_acceleration",
]
