"""Unit tests for record timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from time_utils import next_timestamp, parse_iso, to_iso

NOW = datetime(2025, 1, 15, 17, 0, 0, 123456, tzinfo=timezone.utc)


def test_to_iso_uses_millisecond_precision_and_z_suffix() -> None:
    """Timestamps have a fixed, sortable layout."""
    assert to_iso(NOW) == "2025-01-15T17:00:00.123Z"


def test_to_iso_converts_offsets_and_naive_values() -> None:
    """Aware values are converted to UTC and naive ones are assumed UTC."""
    plus_two = NOW.astimezone(timezone(timedelta(hours=2)))

    assert to_iso(plus_two) == "2025-01-15T17:00:00.123Z"
    assert to_iso(NOW.replace(tzinfo=None)) == "2025-01-15T17:00:00.123Z"


def test_parse_iso_reads_z_suffix() -> None:
    """Z-suffixed strings parse to aware UTC datetimes."""
    parsed = parse_iso("2025-01-15T17:00:00.123Z")

    assert parsed == datetime(2025, 1, 15, 17, 0, 0, 123000, tzinfo=timezone.utc)


def test_next_timestamp_without_floor_is_now() -> None:
    """With nothing to beat, the current time is used."""
    assert next_timestamp(None, now=NOW) == "2025-01-15T17:00:00.123Z"


def test_next_timestamp_uses_now_when_later() -> None:
    """A floor in the past does not change the result."""
    assert next_timestamp("2025-01-01T00:00:00.000Z", now=NOW) == to_iso(NOW)


def test_next_timestamp_advances_past_equal_or_future_floor() -> None:
    """Equal or later floors are advanced by one millisecond."""
    assert next_timestamp("2025-01-15T17:00:00.123Z", now=NOW) == "2025-01-15T17:00:00.124Z"
    assert (
        next_timestamp("2025-01-15T17:00:00.500Z", "2025-01-15T17:00:00.900Z", now=NOW)
        == "2025-01-15T17:00:00.901Z"
    )


def test_string_order_matches_time_order() -> None:
    """Lexical comparison of record timestamps is chronological."""
    earlier = to_iso(NOW)
    later = to_iso(NOW + timedelta(milliseconds=1))

    assert earlier < later
