"""Production count records (good and scrap units) per machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

from production_integrity.storage.base import PersistentStore
from production_integrity.utils.time import format_timestamp, parse_timestamp, to_utc

PRODUCTION_COLLECTION = "production_inputs"


@dataclass(frozen=True)
class ProductionRecord:
    id: str
    machine_id: str
    recorded_at: datetime
    good_parts: int
    scrap_parts: int = 0
    job_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "machine_id": self.machine_id,
            "recorded_at": format_timestamp(self.recorded_at),
            "good_parts": self.good_parts,
            "scrap_parts": self.scrap_parts,
            "job_id": self.job_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductionRecord":
        return cls(
            id=data["id"],
            machine_id=data["machine_id"],
            recorded_at=parse_timestamp(data["recorded_at"]),
            good_parts=int(data.get("good_parts") or 0),
            scrap_parts=int(data.get("scrap_parts") or 0),
            job_id=data.get("job_id"),
        )


class ProductionSource(Protocol):
    def records_for(
        self, machine_id: str, start: datetime, end: datetime
    ) -> list[ProductionRecord]: ...


class ProductionLog:
    """Store-backed production source; other components only read from it."""

    def __init__(self, store: PersistentStore) -> None:
        self._store = store

    def add(
        self,
        machine_id: str,
        recorded_at: datetime,
        good_parts: int,
        scrap_parts: int = 0,
        job_id: str | None = None,
    ) -> ProductionRecord:
        if good_parts < 0 or scrap_parts < 0:
            raise ValueError("part counts must not be negative")
        record = ProductionRecord(
            id=str(uuid4()),
            machine_id=machine_id,
            recorded_at=to_utc(recorded_at),
            good_parts=good_parts,
            scrap_parts=scrap_parts,
            job_id=job_id,
        )
        self._store.insert(PRODUCTION_COLLECTION, record.id, record.to_dict())
        return record

    def records_for(
        self, machine_id: str, start: datetime, end: datetime
    ) -> list[ProductionRecord]:
        """Records for the machine with ``start <= recorded_at < end``."""
        start_utc, end_utc = to_utc(start), to_utc(end)
        records = (
            ProductionRecord.from_dict(doc) for doc in self._store.values(PRODUCTION_COLLECTION)
        )
        return [
            record
            for record in records
            if record.machine_id == machine_id and start_utc <= record.recorded_at < end_utc
        ]
