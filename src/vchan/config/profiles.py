"""FFmpeg profile loading and validation.

Profiles describe how a channel's output is normalized (resolution, codecs,
bitrates, hardware acceleration). They are stored in a YAML file keyed by
profile name:

    profiles:
      hd:
        resolution: 1920x1080
        hardware_acceleration: qsv
        video_bitrate: 6000
      sd:
        resolution: {width: 720, height: 480}
        transcode: true

Each entry is validated with a Pydantic model and converted to a frozen
FFmpegProfile dataclass.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from vchan.config.loader import get_profiles_path
from vchan.config.models import VChanConfig
from vchan.domain import DisplaySize, FFmpegProfile, HardwareAccelerationKind

logger = logging.getLogger(__name__)

_RESOLUTION_PATTERN = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


class ProfileError(Exception):
    """Error loading or validating a profile."""


class ProfileValidationError(ProfileError):
    """Profile data failed validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class ProfileNotFoundError(ProfileError):
    """Profile does not exist."""


class ResolutionModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class FFmpegProfileModel(BaseModel):
    """Pydantic model for a single profile entry."""

    model_config = ConfigDict(extra="forbid")

    resolution: ResolutionModel
    thread_count: int = Field(default=4, ge=0)
    transcode: bool = True
    hardware_acceleration: HardwareAccelerationKind = HardwareAccelerationKind.NONE
    video_codec: str = Field(default="libx264", min_length=1)
    audio_codec: str = Field(default="aac", min_length=1)
    normalize_resolution: bool = True
    normalize_video_codec: bool = True
    normalize_audio_codec: bool = True
    normalize_audio: bool = True
    video_bitrate: int | None = Field(default=2000, gt=0)
    video_buffer_size: int | None = Field(default=4000, gt=0)
    audio_bitrate: int | None = Field(default=192, gt=0)
    audio_buffer_size: int | None = Field(default=50, gt=0)
    audio_channels: int | None = Field(default=2, gt=0)
    audio_sample_rate: int | None = Field(default=48, gt=0)

    @field_validator("resolution", mode="before")
    @classmethod
    def parse_resolution(cls, v: Any) -> Any:
        """Accept "WIDTHxHEIGHT" strings as well as mappings."""
        if isinstance(v, str):
            match = _RESOLUTION_PATTERN.match(v)
            if match is None:
                raise ValueError(f"expected WIDTHxHEIGHT, got {v!r}")
            return {"width": int(match.group(1)), "height": int(match.group(2))}
        return v

    @field_validator("hardware_acceleration", mode="before")
    @classmethod
    def normalize_acceleration(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().casefold()
        return v


class ProfilesFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    profiles: dict[str, FFmpegProfileModel]


def _format_validation_error(error: Exception) -> tuple[str, str | None]:
    """Format a Pydantic validation error into a message and field path."""
    if isinstance(error, ValidationError):
        errors = error.errors()
        if errors:
            first_error = errors[0]
            loc = ".".join(str(x) for x in first_error.get("loc", []))
            msg = first_error.get("msg", str(error))
            if loc:
                return f"Profile validation failed: {loc}: {msg}", loc
            return f"Profile validation failed: {msg}", None

    return f"Profile validation failed: {error}", None


def _convert_profile(name: str, model: FFmpegProfileModel) -> FFmpegProfile:
    return FFmpegProfile(
        name=name,
        resolution=DisplaySize(model.resolution.width, model.resolution.height),
        thread_count=model.thread_count,
        transcode=model.transcode,
        hardware_acceleration=model.hardware_acceleration,
        video_codec=model.video_codec,
        audio_codec=model.audio_codec,
        normalize_resolution=model.normalize_resolution,
        normalize_video_codec=model.normalize_video_codec,
        normalize_audio_codec=model.normalize_audio_codec,
        normalize_audio=model.normalize_audio,
        video_bitrate=model.video_bitrate,
        video_buffer_size=model.video_buffer_size,
        audio_bitrate=model.audio_bitrate,
        audio_buffer_size=model.audio_buffer_size,
        audio_channels=model.audio_channels,
        audio_sample_rate=model.audio_sample_rate,
    )


def load_profiles_from_dict(data: dict[str, Any]) -> dict[str, FFmpegProfile]:
    """Load and validate profiles from a dictionary.

    Args:
        data: Dictionary with a "profiles" mapping of name to settings.

    Returns:
        Mapping of profile name to FFmpegProfile.

    Raises:
        ProfileValidationError: If the profile data is invalid.
    """
    try:
        model = ProfilesFileModel.model_validate(data)
    except ValidationError as e:
        message, field = _format_validation_error(e)
        raise ProfileValidationError(message, field) from e

    profiles: dict[str, FFmpegProfile] = {}
    for name, entry in model.profiles.items():
        try:
            profiles[name] = _convert_profile(name, entry)
        except ValueError as e:
            raise ProfileValidationError(
                f"Profile validation failed: profiles.{name}: {e}",
                f"profiles.{name}",
            ) from e

    logger.debug("Loaded %d ffmpeg profile(s)", len(profiles))
    return profiles


def load_profiles(path: Path) -> dict[str, FFmpegProfile]:
    """Load and validate profiles from a YAML file.

    Raises:
        ProfileValidationError: If the file is not valid profile YAML.
        FileNotFoundError: If the file does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Profiles file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ProfileValidationError(f"Invalid YAML syntax: {e}") from e

    if data is None:
        raise ProfileValidationError("Profiles file is empty")

    if not isinstance(data, dict):
        raise ProfileValidationError("Profiles file must be a YAML mapping")

    return load_profiles_from_dict(data)


def get_profile(profiles: dict[str, FFmpegProfile], name: str) -> FFmpegProfile:
    """Look up a profile by name.

    Raises:
        ProfileNotFoundError: If no profile has that name.
    """
    try:
        return profiles[name]
    except KeyError:
        available = ", ".join(sorted(profiles)) or "none"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found (available: {available})"
        ) from None


def resolve_profile(config: VChanConfig, name: str | None = None) -> FFmpegProfile:
    """Load the configured profiles file and pick one profile.

    ``name`` falls back to ``ffmpeg.default_profile``.

    Raises:
        ProfileNotFoundError: If no name is given and no default is
            configured, or the name is not in the file.
        FileNotFoundError: If the profiles file does not exist.
        ProfileValidationError: If the profiles file is invalid.
    """
    selected = name or config.ffmpeg.default_profile
    if selected is None:
        raise ProfileNotFoundError(
            "No profile requested and ffmpeg.default_profile is not set"
        )
    return get_profile(load_profiles(get_profiles_path(config)), selected)
