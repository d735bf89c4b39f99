"""Overall Equipment Effectiveness over arbitrary time windows.

OEE = availability x performance x quality, where

- availability = run minutes / planned minutes (planned = the window),
- performance  = parts made / parts possible at the target cycle time, capped at 1,
- quality      = good parts / all parts.

Every ratio falls back to 0 when its denominator is 0.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from production_integrity.errors import ValidationError
from production_integrity.oee.intervals import downtime_minutes
from production_integrity.oee.models import OEEResult
from production_integrity.oee.production import ProductionSource
from production_integrity.oee.shifts import DEFAULT_SHIFT_START_HOURS, resolve_shift_start
from production_integrity.runtime.machines import MachineCatalog
from production_integrity.runtime.models import DowntimeEvent
from production_integrity.utils.time import Clock, utc_now, whole_minutes_between

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_TIME_SECONDS = 30.0


class DowntimeSource(Protocol):
    def downtime_events(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
        machine_id: str | None = None,
        category: object | None = None,
    ) -> list[DowntimeEvent]: ...


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class OEECalculator:
    def __init__(
        self,
        downtime: DowntimeSource,
        production: ProductionSource,
        catalog: MachineCatalog,
        clock: Clock = utc_now,
        default_cycle_time: float = DEFAULT_CYCLE_TIME_SECONDS,
        shift_start_hours: Sequence[int] = DEFAULT_SHIFT_START_HOURS,
        merge_overlapping_downtime: bool = False,
    ) -> None:
        if default_cycle_time <= 0:
            raise ValueError("default_cycle_time must be positive")
        self._downtime = downtime
        self._production = production
        self._catalog = catalog
        self._clock = clock
        self._default_cycle_time = default_cycle_time
        self._shift_start_hours = tuple(shift_start_hours)
        self._merge_overlaps = merge_overlapping_downtime

    def _target_cycle_time(self, machine_id: str, override: float | None) -> float:
        if override is not None:
            if override <= 0:
                raise ValidationError("target cycle time must be positive")
            return float(override)
        machine = self._catalog.get(machine_id)
        if machine is not None and machine.cycle_time_seconds is not None:
            return machine.cycle_time_seconds
        return self._default_cycle_time

    def calculate(
        self,
        machine_id: str,
        window_start: datetime,
        window_end: datetime,
        target_cycle_time: float | None = None,
    ) -> OEEResult:
        if window_end < window_start:
            raise ValidationError("OEE window ends before it starts")

        planned_minutes = whole_minutes_between(window_start, window_end)

        # Events that started before the window are included; clipping drops
        # whatever ended before window_start.
        events = self._downtime.downtime_events(until=window_end, machine_id=machine_id)
        lost_minutes = downtime_minutes(
            events, window_start, window_end, merge_overlaps=self._merge_overlaps
        )
        actual_run_minutes = int(_clamp(planned_minutes - lost_minutes, 0, planned_minutes))

        records = self._production.records_for(machine_id, window_start, window_end)
        good_parts = sum(record.good_parts for record in records)
        scrap_parts = sum(record.scrap_parts for record in records)
        total_parts = good_parts + scrap_parts

        availability = actual_run_minutes / planned_minutes if planned_minutes > 0 else 0.0

        cycle_time = self._target_cycle_time(machine_id, target_cycle_time)
        ideal_output = actual_run_minutes * 60 / cycle_time if actual_run_minutes > 0 else 0.0
        performance = _clamp(total_parts / ideal_output, 0.0, 1.0) if ideal_output > 0 else 0.0

        quality = good_parts / total_parts if total_parts > 0 else 0.0
        oee = _clamp(availability * performance * quality, 0.0, 1.0)
        actual_cycle_time = actual_run_minutes * 60 / total_parts if total_parts > 0 else 0.0

        logger.debug(
            "OEE machine=%s planned=%d downtime=%d parts=%d/%d oee=%.3f",
            machine_id,
            planned_minutes,
            lost_minutes,
            good_parts,
            total_parts,
            oee,
        )
        return OEEResult(
            oee=oee,
            availability=availability,
            performance=performance,
            quality=quality,
            planned_minutes=planned_minutes,
            actual_run_minutes=actual_run_minutes,
            downtime_minutes=lost_minutes,
            total_parts=total_parts,
            good_parts=good_parts,
            scrap_parts=scrap_parts,
            target_cycle_time=cycle_time,
            actual_cycle_time=actual_cycle_time,
        )

    def current_shift_start(self) -> datetime:
        return resolve_shift_start(self._clock(), self._shift_start_hours)

    def current_shift_window(self) -> tuple[datetime, datetime]:
        """Return ``(shift_start, now)`` from a single clock read."""
        now = self._clock()
        return resolve_shift_start(now, self._shift_start_hours), now

    def calculate_for_current_shift(
        self, machine_id: str, target_cycle_time: float | None = None
    ) -> OEEResult:
        shift_start, now = self.current_shift_window()
        return self.calculate(machine_id, shift_start, now, target_cycle_time)
