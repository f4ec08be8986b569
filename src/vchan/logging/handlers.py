"""JSON log output for vchan."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries, plus ones added by formatters/filters
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "channel_tag"}

_CHANNEL_FIELDS = ("channel_number", "channel_name")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Keys: timestamp (ISO-8601 UTC), level, message, logger (unless root),
    context (channel fields plus anything passed via ``extra=``) and
    exception when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.name != "root":
            entry["logger"] = record.name

        context = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS
            and key not in _CHANNEL_FIELDS
            and not key.startswith("_")
        }
        # Set by ChannelContextFilter; None outside a channel
        context.update(
            (name, getattr(record, name))
            for name in _CHANNEL_FIELDS
            if getattr(record, name, None) is not None
        )
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        elif record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)
