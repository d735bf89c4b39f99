"""OEE calculation result."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class OEEResult:
    """Availability, performance and quality are fractions in ``[0, 1]``."""

    oee: float
    availability: float
    performance: float
    quality: float
    planned_minutes: int
    actual_run_minutes: int
    downtime_minutes: int
    total_parts: int
    good_parts: int
    scrap_parts: int
    target_cycle_time: float
    actual_cycle_time: float

    @property
    def scrap_percent(self) -> float:
        if self.total_parts <= 0:
            return 0.0
        return self.scrap_parts / self.total_parts * 100

    def to_dict(self) -> dict[str, float | int]:
        return asdict(self)
