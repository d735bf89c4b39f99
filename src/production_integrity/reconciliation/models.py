"""Counter reconciliation records."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from production_integrity.utils.time import format_timestamp, parse_timestamp


class ReconciliationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def compute_variance(system_counter: int, physical_counter: int) -> tuple[int, float]:
    """Return ``(variance, variance_percent)``; the percent is 0 for a zero system count."""
    variance = physical_counter - system_counter
    if system_counter == 0:
        return variance, 0.0
    return variance, (variance / system_counter) * 100


@dataclass(frozen=True)
class ReconciliationRecord:
    id: str
    machine_id: str
    job_id: str
    system_counter: int
    physical_counter: int
    variance: int
    variance_percent: float
    reason: str
    status: ReconciliationStatus
    reconciled_by_id: str
    reconciled_by_name: str
    timestamp: datetime
    auto_approved: bool = False
    resolved_by_id: str | None = None
    resolved_by_name: str | None = None
    resolved_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is ReconciliationStatus.PENDING

    def resolve(
        self,
        status: ReconciliationStatus,
        resolved_by_id: str,
        resolved_by_name: str,
        resolved_at: datetime,
        rejection_reason: str | None = None,
    ) -> "ReconciliationRecord":
        return replace(
            self,
            status=status,
            resolved_by_id=resolved_by_id,
            resolved_by_name=resolved_by_name,
            resolved_at=resolved_at,
            rejection_reason=rejection_reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "machine_id": self.machine_id,
            "job_id": self.job_id,
            "system_counter": self.system_counter,
            "physical_counter": self.physical_counter,
            "variance": self.variance,
            "variance_percent": self.variance_percent,
            "reason": self.reason,
            "status": self.status.value,
            "reconciled_by_id": self.reconciled_by_id,
            "reconciled_by_name": self.reconciled_by_name,
            "timestamp": format_timestamp(self.timestamp),
            "auto_approved": self.auto_approved,
            "resolved_by_id": self.resolved_by_id,
            "resolved_by_name": self.resolved_by_name,
            "resolved_at": format_timestamp(self.resolved_at) if self.resolved_at else None,
            "rejection_reason": self.rejection_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReconciliationRecord":
        resolved_at = data.get("resolved_at")
        return cls(
            id=data["id"],
            machine_id=data["machine_id"],
            job_id=data["job_id"],
            system_counter=int(data["system_counter"]),
            physical_counter=int(data["physical_counter"]),
            variance=int(data["variance"]),
            variance_percent=float(data["variance_percent"]),
            reason=data.get("reason") or "",
            status=ReconciliationStatus(data["status"]),
            reconciled_by_id=data["reconciled_by_id"],
            reconciled_by_name=data["reconciled_by_name"],
            timestamp=parse_timestamp(data["timestamp"]),
            auto_approved=bool(data.get("auto_approved", False)),
            resolved_by_id=data.get("resolved_by_id"),
            resolved_by_name=data.get("resolved_by_name"),
            resolved_at=parse_timestamp(resolved_at) if resolved_at else None,
            rejection_reason=data.get("rejection_reason"),
        )
