"""
Tests for O8 helper functions
"""

from datetime import datetime, timedelta, timezone

import pytest

from o8.utils.helpers import (
    format_duration,
    format_file_size,
    format_timestamp,
    parse_timestamp,
)


class TestTimestamps:
    """Test ISO 8601 formatting and parsing."""

    def test_format_uses_z_suffix(self):
        dt = datetime(2025, 1, 31, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2025-01-31T12:00:00.123Z"

    def test_format_converts_to_utc(self):
        dt = datetime(2025, 1, 31, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(dt) == "2025-01-31T12:00:00.000Z"

    def test_naive_datetime_is_utc(self):
        assert format_timestamp(datetime(2025, 1, 31)) == "2025-01-31T00:00:00.000Z"

    def test_parse_round_trip(self):
        dt = datetime(2025, 6, 1, 8, 30, 15, 500000, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(dt)) == dt

    def test_parse_offset(self):
        parsed = parse_timestamp("2025-06-01T10:30:00+02:00")
        assert parsed.astimezone(timezone.utc).hour == 8

    def test_parse_naive_assumes_utc(self):
        assert parse_timestamp("2025-06-01T10:30:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("timestamp,microsecond", [
        ("2025-06-01T08:30:15.5Z", 500000),
        ("2025-06-01T08:30:15.25Z", 250000),
        ("2025-06-01T08:30:15.1234+00:00", 123400),
        ("2025-06-01T08:30:15.123456Z", 123456),
    ])
    def test_parse_short_fractions(self, timestamp, microsecond):
        parsed = parse_timestamp(timestamp)
        assert parsed.microsecond == microsecond
        assert parsed.second == 15


class TestFormatting:
    """Test human-readable formatting."""

    @pytest.mark.parametrize("ms,expected", [
        (0, "0:00"),
        (1000, "0:01"),
        (61500, "1:01"),
        (180000, "3:00"),
        (3723000, "1:02:03"),
    ])
    def test_duration(self, ms, expected):
        assert format_duration(ms) == expected

    @pytest.mark.parametrize("size,expected", [
        (512, "512.0 B"),
        (2048, "2.0 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
    ])
    def test_file_size(self, size, expected):
        assert format_file_size(size) == expected
