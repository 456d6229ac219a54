"""Time-of-day helpers shared by the schedule resolver and preheat mode."""

from __future__ import annotations

import re
from datetime import datetime, time

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def in_window(now: datetime, start: datetime, end: datetime) -> bool:
    """Return True when ``now`` falls inside ``[start, end)``.

    A window whose start is after its end wraps past midnight, so it covers
    everything from ``start`` onwards plus everything before ``end``.
    """
    if start <= end:
        return start <= now < end
    return now >= start or now < end


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (an optional ``:SS`` suffix is ignored).

    Raises:
        ValueError: If the string is malformed or out of range.
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid time string: {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time string: {value!r}")
    return time(hour, minute)


def at_time_of_day(base: datetime, value: str) -> datetime:
    """Return ``base`` with its clock set to ``value`` (same date and tzinfo)."""
    tod = parse_time_of_day(value)
    return base.replace(hour=tod.hour, minute=tod.minute, second=0, microsecond=0)


__all__ = ["at_time_of_day", "in_window", "parse_time_of_day"]
