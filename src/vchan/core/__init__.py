"""Core utilities shared across vchan modules."""

from vchan.core.datetime_utils import format_duration, total_milliseconds
from vchan.core.string_utils import escape_drawtext, wrap_text
from vchan.core.subprocess_utils import format_command, run_command

__all__ = [
    "escape_drawtext",
    "format_command",
    "format_duration",
    "run_command",
    "total_milliseconds",
    "wrap_text",
]
