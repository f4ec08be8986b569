"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. Arguments passed directly to get_config()
2. Environment variables (VCHAN_*)
3. Config file (~/.vchan/config.toml)
4. Default values

Environment variables:
- VCHAN_CONFIG_PATH: Path to config file (overrides default location)
- VCHAN_DATA_DIR: Base directory for reports and profiles (default ~/.vchan/)
- VCHAN_FFMPEG_PATH: Path to ffmpeg executable
- VCHAN_SAVE_REPORTS: Write ffmpeg run reports (true/false)
- VCHAN_REPORTS_DIR: Directory for ffmpeg run reports
- VCHAN_PROFILES_PATH: YAML file with channel profiles
- VCHAN_TERMINATE_TIMEOUT: Seconds between SIGTERM and SIGKILL
- VCHAN_LOG_LEVEL, VCHAN_LOG_FORMAT, VCHAN_LOG_FILE: Logging overrides
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from pathlib import Path
from typing import Any

from vchan.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from vchan.config.env import EnvReader
from vchan.config.models import VChanConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".vchan"
DEFAULT_CONFIG_FILE = DEFAULT_DATA_DIR / "config.toml"
REPORTS_DIR_NAME = "ffmpeg-reports"
PROFILES_FILE_NAME = "profiles.yaml"

# Cache for loaded config files (path -> (parsed dict, mtime))
_config_cache: dict[Path, tuple[dict[str, Any], float]] = {}
_config_cache_lock = threading.Lock()


class TomlParseError(Exception):
    """Config file exists but is not valid TOML."""


def get_default_config_path() -> Path:
    """Get the config file path, honoring VCHAN_CONFIG_PATH."""
    env_path = os.environ.get("VCHAN_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def get_data_dir(config: VChanConfig | None = None) -> Path:
    """Get the vchan data directory.

    Args:
        config: Loaded configuration; its data_dir wins when set.

    Returns:
        Path to the data directory (~/.vchan/ by default).
    """
    if config is not None and config.data_dir is not None:
        return config.data_dir
    env_path = os.environ.get("VCHAN_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_reports_dir(config: VChanConfig) -> Path:
    """Directory ffmpeg writes run reports into.

    The directory is shared by every channel process; report file names
    carry the process id and a timestamp so they never collide.
    """
    if config.ffmpeg.reports_dir is not None:
        return config.ffmpeg.reports_dir
    return get_data_dir(config) / REPORTS_DIR_NAME


def get_profiles_path(config: VChanConfig) -> Path:
    if config.ffmpeg.profiles_path is not None:
        return config.ffmpeg.profiles_path
    return get_data_dir(config) / PROFILES_FILE_NAME


def load_toml_file(path: Path, *, strict: bool = False) -> dict[str, Any]:
    """Load and parse a TOML file.

    Args:
        path: Path to the TOML file.
        strict: Raise TomlParseError instead of returning {} on bad syntax.

    Returns:
        Parsed dictionary; empty if the file does not exist.
    """
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with open(path, "rb") as f:
            config = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        if strict:
            raise TomlParseError(f"Failed to parse {path}: {e}") from e
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}

    logger.debug("Loaded config from %s", path)
    return config


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from TOML file, cached by mtime.

    Thread-safe: uses a lock to protect concurrent access to the cache.

    Args:
        path: Path to config file. If None, uses default location.
        strict: If True, raise TomlParseError on parse failures.

    Returns:
        Parsed configuration dict. Empty dict if file doesn't exist.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        current_mtime = 0.0

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        result = load_toml_file(path, strict=strict)
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache (primarily for tests)."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # Explicit overrides (highest precedence)
    ffmpeg_path: Path | None = None,
    save_reports: bool | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> VChanConfig:
    """Get vchan configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides VCHAN_CONFIG_PATH).
        ffmpeg_path: Override for the ffmpeg path.
        save_reports: Override for report saving.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise TomlParseError on config file parse failures.

    Returns:
        VChanConfig with merged configuration.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config), source_name="file")
    builder.apply(source_from_env(reader), source_name="env")
    builder.apply(
        ConfigSource(ffmpeg_path=ffmpeg_path, save_reports=save_reports),
        source_name="args",
    )
    return builder.build()
