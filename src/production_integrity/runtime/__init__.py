"""Machine status and downtime tracking."""

from production_integrity.runtime.machines import MACHINES_COLLECTION, MachineCatalog
from production_integrity.runtime.models import (
    DowntimeCategory,
    DowntimeEvent,
    Machine,
    MachineRuntime,
    MachineStatus,
)
from production_integrity.runtime.tracker import (
    DOWNTIME_COLLECTION,
    RUNTIME_COLLECTION,
    RuntimeTracker,
)

__all__ = [
    "DOWNTIME_COLLECTION",
    "DowntimeCategory",
    "DowntimeEvent",
    "MACHINES_COLLECTION",
    "Machine",
    "MachineCatalog",
    "MachineRuntime",
    "MachineStatus",
    "RUNTIME_COLLECTION",
    "RuntimeTracker",
]
