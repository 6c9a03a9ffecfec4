"""Datetime parsing: lax input -> strict output."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pendulum

# Front matter date format: YYYY-MM-DD HH:MM:SS
EXPORT_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_datetime(value: str | date | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a lax datetime value into a timezone-aware datetime.

    Accepts datetime and date objects (as produced by YAML) and strings such as
    ``2024-03-01``, ``2024-03-01 10:20``, ``2024-03-01T10:20:30+02:00``.
    Missing timezone defaults to default_tz; missing time components default to zeros.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value
    if isinstance(value, date):
        return pendulum.datetime(value.year, value.month, value.day, tz=default_tz)

    parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def format_export_datetime(dt: datetime) -> str:
    """Format a datetime for the exported front matter."""
    return dt.strftime(EXPORT_FORMAT)


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
