"""Tests for time window parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from pulsediff.query import parse_since, parse_timestamp

NOW = datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc)


class TestParseSince:

    def test_hours(self):
        result = parse_since("24h")
        dt = datetime.fromisoformat(result)
        expected = datetime.now(timezone.utc) - timedelta(hours=24)
        assert abs((dt - expected).total_seconds()) < 5

    def test_minutes(self):
        assert parse_since("30m", now=NOW) == "2026-02-23T11:30:00+00:00"

    def test_days(self):
        assert parse_since("7d", now=NOW) == "2026-02-16T12:00:00+00:00"

    def test_weeks(self):
        assert parse_since("2w", now=NOW) == "2026-02-09T12:00:00+00:00"

    def test_date(self):
        assert parse_since("2026-02-20") == "2026-02-20T00:00:00+00:00"

    def test_iso_datetime(self):
        assert parse_since("2026-02-20T14:00:00") == "2026-02-20T14:00:00+00:00"

    def test_offset_converted_to_utc(self):
        assert parse_since("2026-02-20T14:00:00+02:00") == "2026-02-20T12:00:00+00:00"

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid time filter"):
            parse_since("last tuesday")


class TestParseTimestamp:

    def test_z_suffix(self):
        assert parse_timestamp("2026-02-23T10:00:00Z") == datetime(
            2026, 2, 23, 10, 0, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        dt = parse_timestamp(datetime(2026, 2, 23, 10, 0))
        assert dt.tzinfo is not None
        assert dt.utcoffset() == timedelta(0)

    def test_not_a_string(self):
        with pytest.raises(ValueError):
            parse_timestamp(1700000000)
