"""Tests for core/datetime_utils.py."""

from datetime import timedelta

import pytest

from vchan.core.datetime_utils import format_duration, total_milliseconds


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (timedelta(0), "00:00:00"),
            (timedelta(minutes=5, seconds=30), "00:05:30"),
            (timedelta(hours=1, minutes=2, seconds=3), "01:02:03"),
            (timedelta(seconds=1, milliseconds=500), "00:00:01.500000"),
            (timedelta(microseconds=42), "00:00:00.000042"),
        ],
    )
    def test_formats(self, value: timedelta, expected: str) -> None:
        assert format_duration(value) == expected

    def test_hours_not_wrapped_at_a_day(self) -> None:
        """Offsets beyond 24 hours keep counting hours."""
        assert format_duration(timedelta(days=1, hours=2)) == "26:00:00"

    def test_negative_values_carry_sign(self) -> None:
        assert format_duration(timedelta(seconds=-90)) == "-00:01:30"


class TestTotalMilliseconds:
    """Tests for total_milliseconds."""

    def test_whole_values(self) -> None:
        assert total_milliseconds(timedelta(minutes=22)) == 1_320_000

    def test_rounds_sub_millisecond(self) -> None:
        assert total_milliseconds(timedelta(microseconds=1500)) == 2
        assert total_milliseconds(timedelta(microseconds=1400)) == 1
