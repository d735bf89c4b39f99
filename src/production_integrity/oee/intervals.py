"""Downtime interval arithmetic over a time window."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from production_integrity.runtime.models import DowntimeEvent
from production_integrity.utils.time import to_utc, whole_minutes_between

Interval = tuple[datetime, datetime]


def clip_to_window(
    event: DowntimeEvent, window_start: datetime, window_end: datetime
) -> Interval | None:
    """The part of ``event`` inside ``[window_start, window_end)``.

    An open event runs through ``window_end``. Returns None when nothing of
    the event falls inside the window.
    """
    start = max(to_utc(event.start_time), to_utc(window_start))
    event_end = to_utc(event.end_time) if event.end_time is not None else to_utc(window_end)
    end = min(event_end, to_utc(window_end))
    if end <= start:
        return None
    return start, end


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of overlapping or touching intervals, sorted by start."""
    merged: list[Interval] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def downtime_minutes(
    events: Iterable[DowntimeEvent],
    window_start: datetime,
    window_end: datetime,
    merge_overlaps: bool = False,
) -> int:
    """Whole downtime minutes inside the window.

    Each interval is truncated to whole minutes on its own before summing.
    Without ``merge_overlaps`` overlapping events are each counted in full.
    """
    clipped = [
        interval
        for interval in (clip_to_window(event, window_start, window_end) for event in events)
        if interval is not None
    ]
    if merge_overlaps:
        clipped = merge_intervals(clipped)
    return sum(whole_minutes_between(start, end) for start, end in clipped)
