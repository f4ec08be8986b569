"""ffmpeg discovery and hardware acceleration probing.

Channels configured for hardware acceleration are checked against what the
local ffmpeg build reports (``ffmpeg -hide_banner -hwaccels``) before any
command is built for them.
"""

from __future__ import annotations

import logging
import shutil
import subprocess  # nosec B404 - only for TimeoutExpired
from pathlib import Path

from vchan.config.models import VChanConfig
from vchan.core.subprocess_utils import run_command
from vchan.domain import HardwareAccelerationKind

logger = logging.getLogger(__name__)

# Timeout for capability detection commands (seconds)
DETECTION_TIMEOUT = 10

# Names printed by "ffmpeg -hwaccels" mapped to the kind that uses them
HWACCEL_NAMES: dict[str, HardwareAccelerationKind] = {
    "qsv": HardwareAccelerationKind.QSV,
    "cuda": HardwareAccelerationKind.NVENC,
    "vaapi": HardwareAccelerationKind.VAAPI,
}


def find_ffmpeg(configured_path: Path | None = None) -> Path | None:
    """Find the ffmpeg executable.

    A configured path wins when it points at a file; otherwise PATH is
    searched.
    """
    if configured_path:
        if configured_path.is_file():
            return configured_path
        logger.warning("Configured path for ffmpeg is not a file: %s", configured_path)

    which_result = shutil.which("ffmpeg")
    if which_result:
        return Path(which_result)
    return None


def require_ffmpeg(config: VChanConfig) -> Path:
    """Get path to ffmpeg, raising an error if not available.

    Raises:
        RuntimeError: If ffmpeg cannot be found.
    """
    path = find_ffmpeg(config.tools.ffmpeg)
    if path is None:
        raise RuntimeError(
            "Required tool not available: ffmpeg. Install ffmpeg or set "
            "VCHAN_FFMPEG_PATH."
        )
    return path


def parse_hwaccels(output: str) -> frozenset[HardwareAccelerationKind]:
    """Parse the output of ``ffmpeg -hwaccels``.

    The first line is a "Hardware acceleration methods:" header; each
    following non-empty line names one method.
    """
    kinds = set()
    for line in output.splitlines()[1:]:
        kind = HWACCEL_NAMES.get(line.strip().casefold())
        if kind is not None:
            kinds.add(kind)
    return frozenset(kinds)


def detect_hardware_accelerations(
    ffmpeg_path: Path,
) -> frozenset[HardwareAccelerationKind]:
    """Return the acceleration kinds the given ffmpeg build supports.

    Failures are logged and reported as "no hardware acceleration"; software
    transcoding is always possible.
    """
    try:
        stdout, stderr, rc = run_command(
            [ffmpeg_path, "-hide_banner", "-hwaccels"], timeout=DETECTION_TIMEOUT
        )
    except subprocess.TimeoutExpired:
        return frozenset()
    except OSError as e:
        logger.warning("Could not run %s: %s", ffmpeg_path, e)
        return frozenset()

    if rc != 0:
        logger.warning(
            "ffmpeg -hwaccels failed (exit %d): %s", rc, stderr.strip()[:200]
        )
        return frozenset()

    kinds = parse_hwaccels(stdout)
    logger.debug(
        "Detected hardware accelerations: %s",
        ", ".join(sorted(k.value for k in kinds)) or "none",
    )
    return kinds


def validate_hardware_acceleration(
    kind: HardwareAccelerationKind,
    available: frozenset[HardwareAccelerationKind],
) -> str | None:
    """Check a requested acceleration kind against what ffmpeg supports.

    Returns:
        An error message when the kind is unsupported, otherwise None.
    """
    if kind is HardwareAccelerationKind.NONE or kind in available:
        return None
    supported = ", ".join(sorted(k.value for k in available)) or "none"
    return (
        f"Hardware acceleration '{kind.value}' is not supported by this ffmpeg "
        f"build (available: {supported})"
    )
