"""Configuration data models.

This module defines dataclasses for vchan configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolPathsConfig:
    """External tool paths. Unset tools are looked up in PATH."""

    ffmpeg: Path | None = None


@dataclass
class FFmpegConfig:
    """Configuration for building ffmpeg invocations."""

    # Ask ffmpeg to write a run report for every process (FFREPORT)
    save_reports: bool = False

    # Report directory (None = <data_dir>/ffmpeg-reports)
    reports_dir: Path | None = None

    # YAML file with channel profiles (None = <data_dir>/profiles.yaml)
    profiles_path: Path | None = None

    # Profile used by channels that do not name one
    default_profile: str | None = None

    # Background image looped behind error messages
    error_background: Path | None = None

    # Font file for error message text (None = fontconfig "Sans")
    error_font: Path | None = None


@dataclass
class StreamingConfig:
    """Configuration for running channel streams."""

    # Bytes read from ffmpeg stdout per chunk
    chunk_size: int = 65_536

    # Seconds to wait after SIGTERM before killing ffmpeg
    terminate_timeout: float = 5.0

    # Length of error-slide streams in seconds
    error_duration: int = 30

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.terminate_timeout <= 0:
            raise ValueError(
                f"terminate_timeout must be positive, got {self.terminate_timeout}"
            )
        if self.error_duration < 1:
            raise ValueError(
                f"error_duration must be positive, got {self.error_duration}"
            )


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.casefold() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.casefold() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class VChanConfig:
    """Main configuration container, aggregating all sections."""

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    ffmpeg: FFmpegConfig = field(default_factory=FFmpegConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Base directory for reports and profiles
    data_dir: Path | None = None
