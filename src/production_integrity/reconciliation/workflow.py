"""Counter reconciliation approval workflow.

States: ``pending -> approved | rejected``. A count whose variance is within
the threshold is created already approved and never passes through pending.
Approved and rejected records are terminal.

The workflow does not authorize anyone. Callers check reviewer authority
first (see :mod:`production_integrity.reconciliation.review`).
"""

from __future__ import annotations

import logging
from uuid import uuid4

from production_integrity.audit.ledger import Ledger
from production_integrity.auth.context import Actor
from production_integrity.errors import InvalidStateError, NotFoundError, ValidationError
from production_integrity.reconciliation.models import (
    ReconciliationRecord,
    ReconciliationStatus,
    compute_variance,
)
from production_integrity.storage.base import PersistentStore
from production_integrity.storage.sync import RemoteSync, push_quietly
from production_integrity.utils.time import Clock, to_utc, utc_now

logger = logging.getLogger(__name__)

RECONCILIATION_COLLECTION = "reconciliations"
ENTITY_TYPE = "CounterReconciliation"


def _require_counter(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must not be negative")


class ReconciliationWorkflow:
    def __init__(
        self,
        store: PersistentStore,
        ledger: Ledger,
        sync: RemoteSync,
        threshold_percent: float = 2.0,
        clock: Clock = utc_now,
    ) -> None:
        if threshold_percent < 0:
            raise ValueError("threshold_percent must not be negative")
        self._store = store
        self._ledger = ledger
        self._sync = sync
        self._threshold = threshold_percent
        self._clock = clock

    @property
    def threshold_percent(self) -> float:
        return self._threshold

    def requires_approval(self, variance_percent: float) -> bool:
        return abs(variance_percent) > self._threshold

    def create(
        self,
        machine_id: str,
        job_id: str,
        system_counter: int,
        physical_counter: int,
        reason: str,
        reporter: Actor,
    ) -> ReconciliationRecord:
        if not machine_id or not job_id:
            raise ValidationError("Reconciliation requires a machine and a job")
        _require_counter("system_counter", system_counter)
        _require_counter("physical_counter", physical_counter)

        variance, variance_percent = compute_variance(system_counter, physical_counter)
        pending = self.requires_approval(variance_percent)
        now = to_utc(self._clock())

        record = ReconciliationRecord(
            id=str(uuid4()),
            machine_id=machine_id,
            job_id=job_id,
            system_counter=system_counter,
            physical_counter=physical_counter,
            variance=variance,
            variance_percent=variance_percent,
            reason=reason,
            status=ReconciliationStatus.PENDING if pending else ReconciliationStatus.APPROVED,
            reconciled_by_id=reporter.user_id,
            reconciled_by_name=reporter.user_name,
            timestamp=now,
            auto_approved=not pending,
            resolved_at=None if pending else now,
        )

        document = record.to_dict()
        self._store.insert(RECONCILIATION_COLLECTION, record.id, document)
        push_quietly(self._sync, RECONCILIATION_COLLECTION, record.id, document)

        self._ledger.log_reconciliation(
            ENTITY_TYPE,
            record.id,
            before={"system_counter": system_counter},
            after={"physical_counter": physical_counter, "variance": variance},
            reason=reason,
            actor=reporter,
            metadata={
                "machine_id": machine_id,
                "job_id": job_id,
                "variance_percent": variance_percent,
                "status": record.status.value,
                "auto_approved": record.auto_approved,
            },
        )

        logger.info(
            "Reconciliation %s for machine %s job %s: variance %+d (%.1f%%) -> %s",
            record.id,
            machine_id,
            job_id,
            variance,
            variance_percent,
            "pending approval" if pending else "auto-approved",
        )
        return record

    def approve(self, record_id: str, reviewer: Actor) -> ReconciliationRecord:
        record = self._transition(record_id, reviewer, ReconciliationStatus.APPROVED)
        self._ledger.log_approval(
            ENTITY_TYPE,
            record.id,
            actor=reviewer,
            before={"status": ReconciliationStatus.PENDING.value},
            after={"status": record.status.value},
            metadata={"machine_id": record.machine_id, "job_id": record.job_id},
        )
        logger.info("Reconciliation %s approved by %s", record.id, reviewer.user_id)
        return record

    def reject(self, record_id: str, reviewer: Actor, rejection_reason: str) -> ReconciliationRecord:
        if rejection_reason is None or not rejection_reason.strip():
            raise ValidationError("Rejecting a reconciliation requires a reason")

        record = self._transition(
            record_id, reviewer, ReconciliationStatus.REJECTED, rejection_reason=rejection_reason
        )
        self._ledger.log_rejection(
            ENTITY_TYPE,
            record.id,
            reason=rejection_reason,
            actor=reviewer,
            before={"status": ReconciliationStatus.PENDING.value},
            after={"status": record.status.value},
            metadata={"machine_id": record.machine_id, "job_id": record.job_id},
        )
        logger.info("Reconciliation %s rejected by %s", record.id, reviewer.user_id)
        return record

    def _transition(
        self,
        record_id: str,
        reviewer: Actor,
        status: ReconciliationStatus,
        rejection_reason: str | None = None,
    ) -> ReconciliationRecord:
        versioned = self._store.get_versioned(RECONCILIATION_COLLECTION, record_id)
        if versioned is None:
            raise NotFoundError("Reconciliation", record_id)

        record = ReconciliationRecord.from_dict(versioned.document)
        if not record.is_pending:
            raise InvalidStateError(
                f"Reconciliation {record_id} is {record.status.value}; only pending records "
                "can be approved or rejected"
            )

        resolved = record.resolve(
            status,
            resolved_by_id=reviewer.user_id,
            resolved_by_name=reviewer.user_name,
            resolved_at=to_utc(self._clock()),
            rejection_reason=rejection_reason,
        )
        document = resolved.to_dict()
        if not self._store.compare_and_put(
            RECONCILIATION_COLLECTION, record_id, document, versioned.revision
        ):
            raise InvalidStateError(
                f"Reconciliation {record_id} was resolved concurrently by another reviewer"
            )
        push_quietly(self._sync, RECONCILIATION_COLLECTION, record_id, document)
        return resolved

    # ---- queries ---------------------------------------------------------------

    def get(self, record_id: str) -> ReconciliationRecord:
        document = self._store.get(RECONCILIATION_COLLECTION, record_id)
        if document is None:
            raise NotFoundError("Reconciliation", record_id)
        return ReconciliationRecord.from_dict(document)

    def all(self) -> list[ReconciliationRecord]:
        records = [
            ReconciliationRecord.from_dict(doc)
            for doc in self._store.values(RECONCILIATION_COLLECTION)
        ]
        records.reverse()
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records

    def pending(self) -> list[ReconciliationRecord]:
        return [record for record in self.all() if record.is_pending]

    def history(self) -> list[ReconciliationRecord]:
        return [record for record in self.all() if not record.is_pending]

    def for_machine(self, machine_id: str) -> list[ReconciliationRecord]:
        return [record for record in self.all() if record.machine_id == machine_id]
