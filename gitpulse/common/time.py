"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime, *, field: str = "value") -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def parse_iso(value: str | None) -> dt.datetime | None:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime.

    Empty values and strings that do not parse return ``None``; GitHub omits
    or nulls timestamps freely and mappers treat them as absent. Naive values
    are assumed to be UTC.
    """
    if not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def to_iso(value: dt.datetime) -> str:
    """Format an aware datetime the way the GitHub REST API expects."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_day(value: dt.datetime) -> dt.date:
    """Return the UTC calendar date of ``value``."""
    return ensure_utc(value).date()
