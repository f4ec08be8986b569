"""Static per-hardware-target capability tables.

Single source of truth for everything that differs between hardware
acceleration targets:

- Device initialization flags placed before the first input
- Named hardware decoders (only Quick Sync substitutes decoders by name;
  CUDA and VA-API negotiate hardware frames by pixel format instead)
- Codecs a target cannot decode on the device
- Filter names for deinterlacing, scaling and moving frames between
  device and system memory

Every per-kind table is checked for exhaustiveness at import time.
"""

from __future__ import annotations

from collections.abc import Mapping

from vchan.domain import DisplaySize, HardwareAccelerationKind

# =============================================================================
# Device Initialization
# =============================================================================

HWACCEL_ARGS: dict[HardwareAccelerationKind, tuple[str, ...]] = {
    HardwareAccelerationKind.NONE: (),
    HardwareAccelerationKind.QSV: (
        "-hwaccel",
        "qsv",
        "-init_hw_device",
        "qsv=qsv:MFX_IMPL_hw_any",
    ),
    HardwareAccelerationKind.NVENC: (
        "-hwaccel",
        "cuda",
        "-hwaccel_output_format",
        "cuda",
    ),
    HardwareAccelerationKind.VAAPI: (
        "-hwaccel",
        "vaapi",
        "-vaapi_device",
        "/dev/dri/renderD128",
        "-hwaccel_output_format",
        "vaapi",
    ),
}

# =============================================================================
# Decoders
# =============================================================================

QSV_DECODERS: dict[str, str] = {
    "h264": "h264_qsv",
    "hevc": "hevc_qsv",
    "mpeg2video": "mpeg2_qsv",
}

HARDWARE_DECODERS: dict[HardwareAccelerationKind, Mapping[str, str]] = {
    HardwareAccelerationKind.NONE: {},
    HardwareAccelerationKind.QSV: QSV_DECODERS,
    HardwareAccelerationKind.NVENC: {},
    HardwareAccelerationKind.VAAPI: {},
}

# Codecs that fall back to software decoding even with -hwaccel set, so
# decoded frames land in system memory.
SOFTWARE_DECODED_CODECS: dict[HardwareAccelerationKind, frozenset[str]] = {
    HardwareAccelerationKind.NONE: frozenset(),
    HardwareAccelerationKind.QSV: frozenset(),
    HardwareAccelerationKind.NVENC: frozenset({"mpeg4", "msmpeg4v3"}),
    HardwareAccelerationKind.VAAPI: frozenset({"mpeg4", "msmpeg4v3"}),
}

# =============================================================================
# Filters
# =============================================================================

DEINTERLACE_FILTERS: dict[HardwareAccelerationKind, str] = {
    HardwareAccelerationKind.NONE: "yadif=1",
    HardwareAccelerationKind.QSV: "deinterlace_qsv",
    HardwareAccelerationKind.NVENC: "yadif_cuda",
    HardwareAccelerationKind.VAAPI: "deinterlace_vaapi",
}

SCALE_FILTERS: dict[HardwareAccelerationKind, str] = {
    HardwareAccelerationKind.NONE: "scale={width}:{height}:flags=fast_bilinear",
    HardwareAccelerationKind.QSV: "scale_qsv=w={width}:h={height}",
    HardwareAccelerationKind.NVENC: "scale_cuda={width}:{height}",
    HardwareAccelerationKind.VAAPI: "scale_vaapi=w={width}:h={height}",
}

UPLOAD_FILTERS: dict[HardwareAccelerationKind, tuple[str, ...]] = {
    HardwareAccelerationKind.NONE: (),
    HardwareAccelerationKind.QSV: ("hwupload=extra_hw_frames=64",),
    HardwareAccelerationKind.NVENC: ("hwupload_cuda",),
    HardwareAccelerationKind.VAAPI: ("format=nv12|vaapi", "hwupload"),
}

DOWNLOAD_FILTERS: dict[HardwareAccelerationKind, tuple[str, ...]] = {
    HardwareAccelerationKind.NONE: (),
    HardwareAccelerationKind.QSV: ("hwdownload", "format=nv12"),
    HardwareAccelerationKind.NVENC: ("hwdownload", "format=nv12"),
    HardwareAccelerationKind.VAAPI: ("hwdownload", "format=nv12"),
}


def _check_exhaustive() -> None:
    tables: dict[str, Mapping[HardwareAccelerationKind, object]] = {
        "HWACCEL_ARGS": HWACCEL_ARGS,
        "HARDWARE_DECODERS": HARDWARE_DECODERS,
        "SOFTWARE_DECODED_CODECS": SOFTWARE_DECODED_CODECS,
        "DEINTERLACE_FILTERS": DEINTERLACE_FILTERS,
        "SCALE_FILTERS": SCALE_FILTERS,
        "UPLOAD_FILTERS": UPLOAD_FILTERS,
        "DOWNLOAD_FILTERS": DOWNLOAD_FILTERS,
    }
    for table_name, table in tables.items():
        missing = set(HardwareAccelerationKind) - set(table)
        if missing:
            names = ", ".join(sorted(kind.name for kind in missing))
            raise RuntimeError(f"{table_name} has no entry for: {names}")


_check_exhaustive()


# =============================================================================
# Lookups
# =============================================================================


def get_hwaccel_args(kind: HardwareAccelerationKind) -> tuple[str, ...]:
    """Device initialization flags for a hardware target (empty for NONE)."""
    return HWACCEL_ARGS[kind]


def get_hardware_decoder(
    codec: str | None, kind: HardwareAccelerationKind
) -> str | None:
    """Look up a named hardware decoder for a codec.

    A miss is not an error: callers fall back to ffmpeg's default decoder.

    Args:
        codec: Source video codec name as reported by ffprobe (e.g. "h264").
        kind: Hardware acceleration target.

    Returns:
        Decoder name (e.g. "h264_qsv") or None if there is no substitution.
    """
    if codec is None:
        return None
    return HARDWARE_DECODERS[kind].get(codec.casefold())


def is_hardware_decoded(kind: HardwareAccelerationKind, codec: str | None) -> bool:
    """Whether decoded frames for this codec end up in device memory.

    Quick Sync only decodes on the device when a named decoder is selected.
    CUDA and VA-API decode on the device unless the codec is known to fall
    back to software; an unknown codec is assumed to decode on the device.
    """
    if kind == HardwareAccelerationKind.NONE:
        return False
    if kind == HardwareAccelerationKind.QSV:
        return get_hardware_decoder(codec, kind) is not None
    if codec is None:
        return True
    return codec.casefold() not in SOFTWARE_DECODED_CODECS[kind]


def get_deinterlace_filter(kind: HardwareAccelerationKind) -> str:
    return DEINTERLACE_FILTERS[kind]


def get_scale_filter(kind: HardwareAccelerationKind, size: DisplaySize) -> str:
    return SCALE_FILTERS[kind].format(width=size.width, height=size.height)


def get_upload_filters(kind: HardwareAccelerationKind) -> tuple[str, ...]:
    """Filters that move system-memory frames onto the device."""
    return UPLOAD_FILTERS[kind]


def get_download_filters(kind: HardwareAccelerationKind) -> tuple[str, ...]:
    """Filters that move device frames into system memory."""
    return DOWNLOAD_FILTERS[kind]
