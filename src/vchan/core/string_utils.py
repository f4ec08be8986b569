"""String helpers for text that ends up inside ffmpeg filter graphs.

A drawtext value passes through two parsers before the filter sees it: the
filtergraph parser (which honors single quotes) and the filter option parser
(which splits on ':' and honors backslash escapes). The helpers here produce
text that survives both when placed inside single quotes.
"""

from __future__ import annotations

import textwrap


def escape_drawtext(text: str) -> str:
    """Escape text for use as text='...' in a drawtext filter.

    Args:
        text: Raw text to display.

    Returns:
        Text safe to embed between single quotes in a filter graph.

    Example:
        >>> escape_drawtext("File: missing")
        'File\\\\: missing'
    """
    escaped = text.replace("\\", "\\\\").replace(":", "\\:")
    # A quote must close the quoted span, appear escaped, then reopen it.
    return escaped.replace("'", "'\\\\\\''")


def wrap_text(text: str, width: int) -> str:
    """Word-wrap text to lines of at most width characters.

    Whitespace runs (including existing newlines) are collapsed. Words longer
    than width are broken.

    Args:
        text: Text to wrap.
        width: Maximum characters per line (at least 1).

    Returns:
        Wrapped text joined with newlines.
    """
    return textwrap.fill(" ".join(text.split()), width=max(1, width))
