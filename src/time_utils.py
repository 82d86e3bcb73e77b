"""Timestamp helpers for decision records.

Record timestamps are ISO 8601 UTC strings with millisecond precision and a
``Z`` suffix (``2025-01-15T17:00:00.000Z``). The fixed width keeps string
order identical to chronological order, which the store relies on.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

_ONE_MILLISECOND = timedelta(milliseconds=1)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as a millisecond-precision UTC ISO string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Naive values are assumed to be UTC.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def next_timestamp(*floors: str | None, now: datetime | None = None) -> str:
    """Return a timestamp strictly later than every non-empty ``floor``.

    The current time is used when it is already later; otherwise the latest
    floor is advanced by one millisecond. Used for ``updatedAt`` so that two
    writes within the same millisecond still order correctly.
    """
    candidate = to_iso(now or utc_now())
    present = [floor for floor in floors if floor]
    if not present:
        return candidate
    latest = max(parse_iso(floor) for floor in present)
    if parse_iso(candidate) > latest:
        return candidate
    return to_iso(latest + _ONE_MILLISECOND)
