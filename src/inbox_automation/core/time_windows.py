"""Local-time window checks shared by business hours and quiet hours."""

from __future__ import annotations

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WEEKDAYS = frozenset({0, 1, 2, 3, 4})  # Monday-Friday


def parse_clock(value: str | time) -> time:
    """Parse an ``HH:MM`` string into a time.

    Args:
        value: Clock string such as ``"22:00"`` or an existing time.

    Returns:
        Parsed time.

    Raises:
        ValueError: If the string is not a valid ``HH:MM`` clock value.
    """
    if isinstance(value, time):
        return value
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(hour=int(hour_str), minute=int(minute_str))
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid clock value: {value!r}") from e


def to_local(now: datetime, timezone: str) -> datetime:
    """Convert an instant to the given IANA timezone.

    Naive datetimes are treated as UTC. Unknown zones fall back to UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo("UTC")
    return now.astimezone(zone)


def is_within_window(start: time, end: time, current: time) -> bool:
    """Check whether a clock time falls inside a daily window.

    Windows are half-open ``[start, end)``. When ``start > end`` the window
    wraps past midnight (e.g. 22:00-07:00). ``start == end`` is empty.
    """
    current_minutes = current.hour * 60 + current.minute
    start_minutes = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute

    if start_minutes == end_minutes:
        return False
    if start_minutes > end_minutes:
        return current_minutes >= start_minutes or current_minutes < end_minutes
    return start_minutes <= current_minutes < end_minutes


def is_local_time_within(
    now: datetime,
    timezone: str,
    start: str | time,
    end: str | time,
    days: frozenset[int] | None = None,
) -> bool:
    """Check whether ``now`` in the user's timezone falls inside a window.

    Args:
        now: Current instant.
        timezone: IANA timezone name of the user.
        start: Window start (``HH:MM``).
        end: Window end (``HH:MM``).
        days: Allowed weekdays (0=Monday). ``None`` allows every day.

    Returns:
        True if the local time is inside the window.
    """
    local = to_local(now, timezone)
    if days is not None and local.weekday() not in days:
        return False
    return is_within_window(parse_clock(start), parse_clock(end), local.time())
