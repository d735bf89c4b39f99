"""OEE calculation from downtime and production history."""

from production_integrity.oee.calculator import DEFAULT_CYCLE_TIME_SECONDS, OEECalculator
from production_integrity.oee.intervals import clip_to_window, downtime_minutes, merge_intervals
from production_integrity.oee.models import OEEResult
from production_integrity.oee.production import (
    PRODUCTION_COLLECTION,
    ProductionLog,
    ProductionRecord,
)
from production_integrity.oee.shifts import DEFAULT_SHIFT_START_HOURS, resolve_shift_start

__all__ = [
    "DEFAULT_CYCLE_TIME_SECONDS",
    "DEFAULT_SHIFT_START_HOURS",
    "OEECalculator",
    "OEEResult",
    "PRODUCTION_COLLECTION",
    "ProductionLog",
    "ProductionRecord",
    "clip_to_window",
    "downtime_minutes",
    "merge_intervals",
    "resolve_shift_start",
]
