"""Shift boundary resolution.

The plant runs 8-hour shifts starting at 06:00, 14:00 and 22:00 local time.
Hours before the first start of the day belong to the previous calendar
day's last shift, e.g. 01:00 on the 5th is in the shift that started at
22:00 on the 4th.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time, timedelta

DEFAULT_SHIFT_START_HOURS: tuple[int, ...] = (6, 14, 22)


def resolve_shift_start(
    now: datetime, start_hours: Sequence[int] = DEFAULT_SHIFT_START_HOURS
) -> datetime:
    """Start of the shift containing ``now``, in ``now``'s own wall clock."""
    if not start_hours:
        raise ValueError("start_hours must not be empty")
    hours = sorted(start_hours)

    started_today = [hour for hour in hours if hour <= now.hour]
    if started_today:
        day = now.date()
        hour = started_today[-1]
    else:
        day = now.date() - timedelta(days=1)
        hour = hours[-1]
    return datetime.combine(day, time(hour), tzinfo=now.tzinfo)
