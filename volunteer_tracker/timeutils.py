"""
Fixed-offset time helpers.

Stored instants are naive UTC datetimes serialized as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.
Local time is UTC plus a constant offset (12 hours by default) with no
daylight-saving adjustment, so it drifts from true local time for part of the year.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

LOCAL_UTC_OFFSET_HOURS = 12

InstantLike = Union[str, datetime, date, None]


def shift_by_fixed_offset(instant: datetime, hours: float) -> datetime:
    return instant + timedelta(hours=hours)


def parse_instant(value: InstantLike) -> Optional[datetime]:
    """
    Parse a stored or client-supplied instant into a naive UTC datetime.

    Accepts datetimes, dates and ISO-8601 strings. Strings without an offset
    are read as UTC. Returns None for missing or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except (ValueError, OverflowError):
            return None
    return parsed


def format_instant(instant: datetime) -> str:
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_iso() -> str:
    return format_instant(utc_now())


def _shifted(value: InstantLike, hours: float) -> Optional[datetime]:
    # None for unparseable values and for shifts past the ends of the datetime range.
    parsed = parse_instant(value)
    if parsed is None:
        return None
    try:
        return shift_by_fixed_offset(parsed, hours)
    except OverflowError:
        return None


def local_day_key(value: InstantLike, offset_hours: float = LOCAL_UTC_OFFSET_HOURS) -> Optional[str]:
    local = _shifted(value, offset_hours)
    if local is None:
        return None
    return local.strftime("%Y-%m-%d")


def local_to_utc(value: InstantLike, offset_hours: float = LOCAL_UTC_OFFSET_HOURS) -> Optional[datetime]:
    """Convert a user-entered local wall-clock value into the stored UTC instant."""
    return _shifted(value, -offset_hours)


def utc_to_local(value: InstantLike, offset_hours: float = LOCAL_UTC_OFFSET_HOURS) -> Optional[datetime]:
    return _shifted(value, offset_hours)


def duration_minutes(start: datetime, end: datetime) -> int:
    # Half-up rounding of whole minutes, matching the stored durations.
    millis = (end - start) / timedelta(milliseconds=1)
    return int(math.floor(millis / 60000 + 0.5))
