"""Logging setup for vchan processes.

Provides configure_logging() to install handlers from a LoggingConfig.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from vchan.logging.context import ChannelContextFilter
from vchan.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from vchan.config.models import LoggingConfig

_LEVEL_MAP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

TEXT_FORMAT = "%(asctime)s - %(channel_tag)s%(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def _make_formatter(format_name: str) -> logging.Formatter:
    if format_name.casefold() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def _open_log_file(config: LoggingConfig) -> RotatingFileHandler | None:
    """Open the rotating log file, or return None if it cannot be created."""
    path = Path(config.file).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Could not open log file {config.file}: {e}\n")
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Install root handlers according to config.

    A rotating file handler is added when config.file is set. stderr gets a
    handler when include_stderr is on, or when the log file cannot be
    opened. Existing root handlers are replaced.
    """
    level = _LEVEL_MAP.get(config.level.casefold(), logging.INFO)
    formatter = _make_formatter(config.format)
    context_filter = ChannelContextFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    def _attach(handler: logging.Handler) -> None:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    file_handler = _open_log_file(config) if config.file else None
    if file_handler is not None:
        _attach(file_handler)
    if file_handler is None or config.include_stderr:
        _attach(logging.StreamHandler(sys.stderr))
