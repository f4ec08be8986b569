"""Configuration builder with explicit layering.

This module provides ConfigBuilder for building VChanConfig by composing
multiple configuration sources with explicit precedence handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from vchan.config.env import EnvReader
from vchan.config.models import (
    FFmpegConfig,
    LoggingConfig,
    StreamingConfig,
    ToolPathsConfig,
    VChanConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values mean "not specified in this source" and do not override
    values from lower-precedence sources.
    """

    # Tool paths
    ffmpeg_path: Path | None = None

    # Data directory
    data_dir: Path | None = None

    # FFmpeg config
    save_reports: bool | None = None
    reports_dir: Path | None = None
    profiles_path: Path | None = None
    default_profile: str | None = None
    error_background: Path | None = None
    error_font: Path | None = None

    # Streaming config
    chunk_size: int | None = None
    terminate_timeout: float | None = None
    error_duration: int | None = None

    # Logging config
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Builds VChanConfig by layering ConfigSources with precedence.

    Later sources override earlier ones (for non-None values).

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config), source_name="file")
        builder.apply(source_from_env(reader), source_name="env")
        builder.apply(cli_source, source_name="cli")
        config = builder.build()
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource, source_name: str = "unknown") -> None:
        """Apply configuration source, overriding existing values.

        Args:
            source: Configuration source to apply.
            source_name: Label used in debug logging.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value
                logger.debug("Config %s set from %s", field_obj.name, source_name)

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self) -> VChanConfig:
        """Build the final VChanConfig with defaults for unset values."""
        tools = ToolPathsConfig(ffmpeg=self._get("ffmpeg_path", None))

        ffmpeg = FFmpegConfig(
            save_reports=self._get("save_reports", False),
            reports_dir=self._get("reports_dir", None),
            profiles_path=self._get("profiles_path", None),
            default_profile=self._get("default_profile", None),
            error_background=self._get("error_background", None),
            error_font=self._get("error_font", None),
        )

        streaming = StreamingConfig(
            chunk_size=self._get("chunk_size", 65_536),
            terminate_timeout=self._get("terminate_timeout", 5.0),
            error_duration=self._get("error_duration", 30),
        )

        logging_config = LoggingConfig(
            level=self._get("logging_level", "info"),
            file=self._get("logging_file", None),
            format=self._get("logging_format", "text"),
            include_stderr=self._get("logging_include_stderr", False),
            max_bytes=self._get("logging_max_bytes", 10_485_760),
            backup_count=self._get("logging_backup_count", 5),
        )

        return VChanConfig(
            tools=tools,
            ffmpeg=ffmpeg,
            streaming=streaming,
            logging=logging_config,
            data_dir=self._get("data_dir", None),
        )


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create ConfigSource from a parsed TOML config file.

    Expected layout:

        data_dir = "~/.vchan"

        [tools]
        ffmpeg = "/usr/bin/ffmpeg"

        [ffmpeg]
        save_reports = true

        [streaming]
        terminate_timeout = 3.0

        [logging]
        level = "debug"
    """
    tools = file_config.get("tools", {})
    ffmpeg = file_config.get("ffmpeg", {})
    streaming = file_config.get("streaming", {})
    logging_conf = file_config.get("logging", {})

    return ConfigSource(
        ffmpeg_path=_optional_path(tools.get("ffmpeg")),
        data_dir=_optional_path(file_config.get("data_dir")),
        save_reports=ffmpeg.get("save_reports"),
        reports_dir=_optional_path(ffmpeg.get("reports_dir")),
        profiles_path=_optional_path(ffmpeg.get("profiles_path")),
        default_profile=ffmpeg.get("default_profile"),
        error_background=_optional_path(ffmpeg.get("error_background")),
        error_font=_optional_path(ffmpeg.get("error_font")),
        chunk_size=streaming.get("chunk_size"),
        terminate_timeout=streaming.get("terminate_timeout"),
        error_duration=streaming.get("error_duration"),
        logging_level=logging_conf.get("level"),
        logging_file=_optional_path(logging_conf.get("file")),
        logging_format=logging_conf.get("format"),
        logging_include_stderr=logging_conf.get("include_stderr"),
        logging_max_bytes=logging_conf.get("max_bytes"),
        logging_backup_count=logging_conf.get("backup_count"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create ConfigSource from VCHAN_* environment variables."""
    return ConfigSource(
        ffmpeg_path=reader.get_path("VCHAN_FFMPEG_PATH"),
        data_dir=reader.get_path("VCHAN_DATA_DIR"),
        save_reports=reader.get_bool("VCHAN_SAVE_REPORTS"),
        reports_dir=reader.get_path("VCHAN_REPORTS_DIR"),
        profiles_path=reader.get_path("VCHAN_PROFILES_PATH"),
        default_profile=reader.get_str("VCHAN_DEFAULT_PROFILE"),
        error_font=reader.get_path("VCHAN_ERROR_FONT"),
        chunk_size=reader.get_int("VCHAN_CHUNK_SIZE"),
        terminate_timeout=reader.get_float("VCHAN_TERMINATE_TIMEOUT"),
        error_duration=reader.get_int("VCHAN_ERROR_DURATION"),
        logging_level=reader.get_str("VCHAN_LOG_LEVEL"),
        logging_file=reader.get_path("VCHAN_LOG_FILE"),
        logging_format=reader.get_str("VCHAN_LOG_FORMAT"),
    )
