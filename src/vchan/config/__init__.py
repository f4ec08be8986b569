"""Configuration management for vchan.

This module provides configuration loading with precedence handling:
1. Explicit arguments (highest priority)
2. Environment variables (VCHAN_*)
3. Config file (~/.vchan/config.toml)
4. Default values (lowest priority)

- EnvReader: Testable environment variable reading with DI support
- ConfigBuilder: Layered config construction with explicit precedence
- load_profiles/get_profile: YAML ffmpeg profiles validated with Pydantic
"""

from vchan.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from vchan.config.env import EnvReader
from vchan.config.loader import (
    TomlParseError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    get_profiles_path,
    get_reports_dir,
    load_config_file,
    load_toml_file,
)
from vchan.config.models import (
    FFmpegConfig,
    LoggingConfig,
    StreamingConfig,
    ToolPathsConfig,
    VChanConfig,
)
from vchan.config.profiles import (
    ProfileError,
    ProfileNotFoundError,
    ProfileValidationError,
    get_profile,
    load_profiles,
    load_profiles_from_dict,
    resolve_profile,
)

__all__ = [
    # Models
    "FFmpegConfig",
    "LoggingConfig",
    "StreamingConfig",
    "ToolPathsConfig",
    "VChanConfig",
    # Loader
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "get_profiles_path",
    "get_reports_dir",
    "load_config_file",
    "load_toml_file",
    "TomlParseError",
    # Builder
    "ConfigBuilder",
    "ConfigSource",
    "EnvReader",
    "source_from_env",
    "source_from_file",
    # Profiles
    "ProfileError",
    "ProfileNotFoundError",
    "ProfileValidationError",
    "get_profile",
    "load_profiles",
    "load_profiles_from_dict",
    "resolve_profile",
]
