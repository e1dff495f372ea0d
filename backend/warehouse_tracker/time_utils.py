from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from .validation import ValidationError

# Business time submitted by scanners may drift slightly ahead of the server.
FUTURE_TOLERANCE = timedelta(minutes=2)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def parse_occurred_at(value) -> datetime:
    """
    Normalize a mutation's business time to canonical UTC-naive datetime.

    Accepts:
    - None -> utcnow()
    - datetime (aware is converted to UTC, naive is taken as UTC)
    - str -> parse_iso_datetime

    Times more than FUTURE_TOLERANCE ahead of the server clock are rejected.
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        dt = value
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    elif isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError("occurred_at must be an ISO-8601 datetime")
    else:
        raise ValidationError("occurred_at must be an ISO-8601 datetime")

    if dt > utcnow() + FUTURE_TOLERANCE:
        raise ValidationError("occurred_at cannot be in the future")
    return dt


def parse_calendar_date(value, field: str = "date") -> date:
    """Accept a date, a datetime (date part) or a 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a calendar date (YYYY-MM-DD)")


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Last representable instant of a calendar day (inclusive bound)."""
    return datetime.combine(day, time.max)


def iter_days(start: date, end: date):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)
