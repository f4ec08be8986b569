"""Structured logging for vchan.

Text or JSON output with file rotation, tagged with the channel being
served.
"""

from vchan.logging.config import configure_logging
from vchan.logging.context import (
    ChannelContextFilter,
    channel_context,
    clear_channel_context,
    get_channel_context,
    set_channel_context,
)
from vchan.logging.handlers import JSONFormatter

__all__ = [
    "ChannelContextFilter",
    "JSONFormatter",
    "channel_context",
    "clear_channel_context",
    "configure_logging",
    "get_channel_context",
    "set_channel_context",
]
