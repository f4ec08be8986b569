"""Channel context for structured logging.

Every channel runs its own ffmpeg process and streaming task. The channel
being served is tracked in contextvars so log lines emitted anywhere below
a channel's task carry its number and name without threading them through
every call.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_channel_number: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "channel_number", default=None
)
_channel_name: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "channel_name", default=None
)


def set_channel_context(number: str, name: str | None = None) -> None:
    _channel_number.set(number)
    _channel_name.set(name)


def clear_channel_context() -> None:
    _channel_number.set(None)
    _channel_name.set(None)


@contextmanager
def channel_context(
    number: str, name: str | None = None
) -> Generator[None, None, None]:
    """Set the channel context for the enclosed block.

    The previous context is restored on exit, so contexts nest. asyncio tasks
    copy the context at creation time, so a task started inside the block
    keeps the channel for its whole lifetime.

    Example:
        with channel_context("12", "Cartoons"):
            logger.info("Starting stream")  # tagged "[CH 12] "
    """
    old_number = _channel_number.get()
    old_name = _channel_name.get()
    try:
        set_channel_context(number, name)
        yield
    finally:
        _channel_number.set(old_number)
        _channel_name.set(old_name)


def get_channel_context() -> tuple[str | None, str | None]:
    """Return (channel_number, channel_name); either may be None."""
    return _channel_number.get(), _channel_name.get()


class ChannelContextFilter(logging.Filter):
    """Logging filter that injects channel context into log records.

    Adds channel_number and channel_name attributes for JSON output, and a
    compact channel_tag such as "[CH 12] " for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        number, name = get_channel_context()

        record.channel_number = number
        record.channel_name = name
        record.channel_tag = f"[CH {number}] " if number else ""

        return True
