"""Machine runtime projection and downtime records."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from production_integrity.utils.time import (
    format_timestamp,
    parse_timestamp,
    whole_minutes_between,
)


class MachineStatus(str, Enum):
    RUNNING = "running"
    IDLE = "idle"
    DOWN = "down"
    MAINTENANCE = "maintenance"
    SETUP = "setup"
    UNKNOWN = "unknown"


class DowntimeCategory(str, Enum):
    MECHANICAL = "mechanical"
    ELECTRICAL = "electrical"
    MATERIAL = "material"
    MOULD_CHANGE = "mould_change"
    SETUP = "setup"
    QUALITY = "quality"
    PLANNED = "planned"
    OTHER = "other"


def _optional_timestamp(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


def _parse_optional(value: str | None) -> datetime | None:
    return parse_timestamp(value) if value else None


@dataclass(frozen=True)
class Machine:
    id: str
    name: str
    cycle_time_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "cycle_time_seconds": self.cycle_time_seconds}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Machine":
        cycle_time = data.get("cycle_time_seconds")
        return cls(
            id=data["id"],
            name=data.get("name") or "Unknown",
            cycle_time_seconds=float(cycle_time) if cycle_time is not None else None,
        )


@dataclass(frozen=True)
class MachineRuntime:
    machine_id: str
    machine_name: str
    status: MachineStatus
    status_since: datetime | None = None
    current_job_id: str | None = None
    current_mould_id: str | None = None
    cycle_count: int = 0
    last_cycle_time: float | None = None
    target_cycle_time: float | None = None
    good_parts: int = 0
    scrap_parts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "machine_name": self.machine_name,
            "status": self.status.value,
            "status_since": _optional_timestamp(self.status_since),
            "current_job_id": self.current_job_id,
            "current_mould_id": self.current_mould_id,
            "cycle_count": self.cycle_count,
            "last_cycle_time": self.last_cycle_time,
            "target_cycle_time": self.target_cycle_time,
            "good_parts": self.good_parts,
            "scrap_parts": self.scrap_parts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MachineRuntime":
        try:
            status = MachineStatus(data.get("status"))
        except ValueError:
            status = MachineStatus.UNKNOWN
        return cls(
            machine_id=data["machine_id"],
            machine_name=data.get("machine_name") or "Unknown",
            status=status,
            status_since=_parse_optional(data.get("status_since")),
            current_job_id=data.get("current_job_id"),
            current_mould_id=data.get("current_mould_id"),
            cycle_count=int(data.get("cycle_count") or 0),
            last_cycle_time=data.get("last_cycle_time"),
            target_cycle_time=data.get("target_cycle_time"),
            good_parts=int(data.get("good_parts") or 0),
            scrap_parts=int(data.get("scrap_parts") or 0),
        )


@dataclass(frozen=True)
class DowntimeEvent:
    """A stoppage on one machine.

    Open events have no ``end_time`` and no ``duration_minutes``; closing an
    event sets both at once and they never change afterwards.
    """

    id: str
    machine_id: str
    category: DowntimeCategory
    reason: str
    start_time: datetime
    end_time: datetime | None = None
    duration_minutes: int | None = None
    reported_by: str | None = None
    resolved_by: str | None = None
    is_planned: bool = False

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    def elapsed_minutes(self, now: datetime) -> int:
        if self.end_time is not None:
            return whole_minutes_between(self.start_time, self.end_time)
        return max(whole_minutes_between(self.start_time, now), 0)

    def close(self, end_time: datetime, resolved_by: str | None) -> "DowntimeEvent":
        return replace(
            self,
            end_time=end_time,
            duration_minutes=whole_minutes_between(self.start_time, end_time),
            resolved_by=resolved_by,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "machine_id": self.machine_id,
            "category": self.category.value,
            "reason": self.reason,
            "start_time": format_timestamp(self.start_time),
            "end_time": _optional_timestamp(self.end_time),
            "duration_minutes": self.duration_minutes,
            "reported_by": self.reported_by,
            "resolved_by": self.resolved_by,
            "is_planned": self.is_planned,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DowntimeEvent":
        try:
            category = DowntimeCategory(data.get("category"))
        except ValueError:
            category = DowntimeCategory.OTHER
        duration = data.get("duration_minutes")
        return cls(
            id=data["id"],
            machine_id=data["machine_id"],
            category=category,
            reason=data.get("reason") or "",
            start_time=parse_timestamp(data["start_time"]),
            end_time=_parse_optional(data.get("end_time")),
            duration_minutes=int(duration) if duration is not None else None,
            reported_by=data.get("reported_by"),
            resolved_by=data.get("resolved_by"),
            is_planned=bool(data.get("is_planned", False)),
        )
