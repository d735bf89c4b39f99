"""Machine master data read by the tracker and the OEE calculator."""

from __future__ import annotations

from production_integrity.runtime.models import Machine
from production_integrity.storage.base import PersistentStore

MACHINES_COLLECTION = "machines"


class MachineCatalog:
    def __init__(self, store: PersistentStore) -> None:
        self._store = store

    def register(
        self, machine_id: str, name: str, cycle_time_seconds: float | None = None
    ) -> Machine:
        if cycle_time_seconds is not None and cycle_time_seconds <= 0:
            raise ValueError("cycle_time_seconds must be positive")
        machine = Machine(id=machine_id, name=name, cycle_time_seconds=cycle_time_seconds)
        self._store.put(MACHINES_COLLECTION, machine_id, machine.to_dict())
        return machine

    def get(self, machine_id: str) -> Machine | None:
        document = self._store.get(MACHINES_COLLECTION, machine_id)
        if document is None:
            return None
        return Machine.from_dict(document)

    def all(self) -> list[Machine]:
        return [Machine.from_dict(doc) for doc in self._store.values(MACHINES_COLLECTION)]
