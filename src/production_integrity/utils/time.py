"""Time helpers.

Every persisted timestamp goes through :func:`format_timestamp`, which always
produces the same fixed-width UTC form. String order of stored timestamps is
therefore chronological order.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_ONE_MINUTE = timedelta(minutes=1)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    return format_timestamp(utc_now())


def plant_clock(tz_name: str) -> Clock:
    """Return a clock reading wall-clock time in the plant's timezone."""
    zone = ZoneInfo(tz_name)

    def _now() -> datetime:
        return datetime.now(tz=zone)

    return _now


def to_utc(value: datetime) -> datetime:
    """Normalise to an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return to_utc(value).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(value))


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """Minutes from ``start`` to ``end``, truncated toward zero.

    Both ends are converted to UTC first so that DST transitions in the plant
    timezone do not distort the result.
    """
    delta = to_utc(end) - to_utc(start)
    return int(delta / _ONE_MINUTE)
