"""Duration formatting for ffmpeg time arguments."""

from datetime import timedelta


def format_duration(value: timedelta) -> str:
    """Format a timedelta the way ffmpeg's -ss and -t options accept it.

    Hours are zero-padded to two digits and are not wrapped at 24, so a
    26-hour offset renders as "26:00:00". A fractional part is added only
    when the value carries sub-second precision.

    Args:
        value: Duration to format.

    Returns:
        Duration string like "00:05:30" or "01:02:03.500000".

    Examples:
        >>> format_duration(timedelta(minutes=5, seconds=30))
        '00:05:30'
        >>> format_duration(timedelta(seconds=1, milliseconds=500))
        '00:00:01.500000'
    """
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    total_seconds = value // timedelta(seconds=1)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{value.microseconds:06d}"
    return text


def total_milliseconds(value: timedelta) -> int:
    """Whole milliseconds in a timedelta, rounded to nearest."""
    return round(value / timedelta(milliseconds=1))
