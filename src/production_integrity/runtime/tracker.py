"""Machine status projection and downtime lifecycle.

Status transitions are unconstrained: any status may follow any
other, including itself. Every transition is recorded in the ledger with its
before/after status so unusual sequences can be found later.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from production_integrity.audit.ledger import Ledger
from production_integrity.auth.context import Actor, resolve_actor
from production_integrity.errors import InvalidStateError, NotFoundError
from production_integrity.runtime.machines import MachineCatalog
from production_integrity.runtime.models import (
    DowntimeCategory,
    DowntimeEvent,
    MachineRuntime,
    MachineStatus,
)
from production_integrity.storage.base import PersistentStore
from production_integrity.storage.sync import RemoteSync, push_quietly
from production_integrity.utils.locks import KeyedLocks
from production_integrity.utils.time import Clock, to_utc, utc_now

logger = logging.getLogger(__name__)

RUNTIME_COLLECTION = "machine_runtime"
DOWNTIME_COLLECTION = "downtime"


def _newest_first(events: list[DowntimeEvent]) -> list[DowntimeEvent]:
    return sorted(events, key=lambda event: event.start_time, reverse=True)


class RuntimeTracker:
    def __init__(
        self,
        store: PersistentStore,
        ledger: Ledger,
        sync: RemoteSync,
        catalog: MachineCatalog,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._sync = sync
        self._catalog = catalog
        self._clock = clock
        self._locks = KeyedLocks()

    def _now(self) -> datetime:
        return to_utc(self._clock())

    # ---- machine status --------------------------------------------------------

    def get_runtime(self, machine_id: str) -> MachineRuntime | None:
        document = self._store.get(RUNTIME_COLLECTION, machine_id)
        if document is None:
            return None
        return MachineRuntime.from_dict(document)

    def all_runtimes(self) -> list[MachineRuntime]:
        """Projections for every catalogued machine plus any uncatalogued ones.

        Catalogued machines that never reported a status appear as unknown.
        """
        stored = {
            doc["machine_id"]: MachineRuntime.from_dict(doc)
            for doc in self._store.values(RUNTIME_COLLECTION)
        }
        runtimes: list[MachineRuntime] = []
        for machine in self._catalog.all():
            runtime = stored.pop(machine.id, None)
            if runtime is None:
                runtime = MachineRuntime(
                    machine_id=machine.id,
                    machine_name=machine.name,
                    status=MachineStatus.UNKNOWN,
                    target_cycle_time=machine.cycle_time_seconds,
                )
            runtimes.append(runtime)
        runtimes.extend(stored.values())
        return runtimes

    def update_status(
        self,
        machine_id: str,
        new_status: MachineStatus,
        job_id: str | None = None,
        mould_id: str | None = None,
        actor: Actor | None = None,
    ) -> MachineRuntime:
        """Write a fresh projection for the machine and record the transition.

        Job and mould carry over from the previous projection when not given.
        """
        with self._locks.hold(f"machine:{machine_id}"):
            existing = self.get_runtime(machine_id)
            previous_status = existing.status if existing is not None else MachineStatus.UNKNOWN
            machine = self._catalog.get(machine_id)

            runtime = MachineRuntime(
                machine_id=machine_id,
                machine_name=machine.name if machine is not None else "Unknown",
                status=new_status,
                status_since=self._now(),
                current_job_id=job_id if job_id is not None else (
                    existing.current_job_id if existing else None
                ),
                current_mould_id=mould_id if mould_id is not None else (
                    existing.current_mould_id if existing else None
                ),
                cycle_count=existing.cycle_count if existing else 0,
                last_cycle_time=existing.last_cycle_time if existing else None,
                target_cycle_time=(
                    machine.cycle_time_seconds
                    if machine is not None and machine.cycle_time_seconds is not None
                    else (existing.target_cycle_time if existing else None)
                ),
                good_parts=existing.good_parts if existing else 0,
                scrap_parts=existing.scrap_parts if existing else 0,
            )

            document = runtime.to_dict()
            self._store.put(RUNTIME_COLLECTION, machine_id, document)
            push_quietly(self._sync, RUNTIME_COLLECTION, machine_id, document)

        self._ledger.log_status_change(
            "MachineRuntime",
            machine_id,
            from_status=previous_status.value,
            to_status=new_status.value,
            actor=actor,
            metadata={"job_id": runtime.current_job_id, "mould_id": runtime.current_mould_id},
        )
        logger.info(
            "Machine %s status changed: %s -> %s",
            machine_id,
            previous_status.value,
            new_status.value,
        )
        return runtime

    def record_cycle(
        self,
        machine_id: str,
        cycle_time: float,
        good_parts: int = 1,
        scrap_parts: int = 0,
    ) -> MachineRuntime | None:
        """Count one completed cycle. Machines without a projection are ignored."""
        with self._locks.hold(f"machine:{machine_id}"):
            existing = self.get_runtime(machine_id)
            if existing is None:
                logger.debug("Ignoring cycle for machine %s with no runtime projection", machine_id)
                return None

            updated = MachineRuntime(
                machine_id=existing.machine_id,
                machine_name=existing.machine_name,
                status=existing.status,
                status_since=existing.status_since,
                current_job_id=existing.current_job_id,
                current_mould_id=existing.current_mould_id,
                cycle_count=existing.cycle_count + 1,
                last_cycle_time=cycle_time,
                target_cycle_time=existing.target_cycle_time,
                good_parts=existing.good_parts + max(good_parts, 0),
                scrap_parts=existing.scrap_parts + max(scrap_parts, 0),
            )
            self._store.put(RUNTIME_COLLECTION, machine_id, updated.to_dict())
        return updated

    # ---- downtime --------------------------------------------------------------

    def start_downtime(
        self,
        machine_id: str,
        category: DowntimeCategory,
        reason: str,
        reporter: Actor | None = None,
        is_planned: bool = False,
    ) -> DowntimeEvent:
        """Open a downtime event and put the machine into down or maintenance.

        An already-open event on the same machine is not checked for; a
        second start opens a second event.
        """
        who = resolve_actor(reporter)
        event = DowntimeEvent(
            id=str(uuid4()),
            machine_id=machine_id,
            category=category,
            reason=reason,
            start_time=self._now(),
            reported_by=who.user_id,
            is_planned=is_planned,
        )

        document = event.to_dict()
        self._store.insert(DOWNTIME_COLLECTION, event.id, document)
        push_quietly(self._sync, DOWNTIME_COLLECTION, event.id, document)

        self.update_status(
            machine_id,
            MachineStatus.MAINTENANCE if is_planned else MachineStatus.DOWN,
            actor=who,
        )
        self._ledger.log_create("DowntimeEvent", event.id, document, actor=who)

        logger.info(
            "Downtime started for machine %s: %s - %s", machine_id, category.value, reason
        )
        return event

    def end_downtime(self, downtime_id: str, resolver: Actor | None = None) -> DowntimeEvent:
        """Close an open event and return the machine to idle."""
        who = resolve_actor(resolver)
        with self._locks.hold(f"downtime:{downtime_id}"):
            document = self._store.get(DOWNTIME_COLLECTION, downtime_id)
            if document is None:
                raise NotFoundError("DowntimeEvent", downtime_id)

            event = DowntimeEvent.from_dict(document)
            if not event.is_active:
                raise InvalidStateError(f"Downtime event {downtime_id} is already closed")

            closed = event.close(self._now(), resolved_by=who.user_id)
            closed_document = closed.to_dict()
            self._store.put(DOWNTIME_COLLECTION, downtime_id, closed_document)
            push_quietly(self._sync, DOWNTIME_COLLECTION, downtime_id, closed_document)

        self.update_status(event.machine_id, MachineStatus.IDLE, actor=who)
        self._ledger.log_update(
            "DowntimeEvent",
            downtime_id,
            before={"end_time": None, "duration_minutes": None},
            after={
                "end_time": closed_document["end_time"],
                "duration_minutes": closed.duration_minutes,
            },
            actor=who,
        )

        logger.info(
            "Downtime ended for machine %s: %d minutes", event.machine_id, closed.duration_minutes
        )
        return closed

    def _all_downtimes(self) -> list[DowntimeEvent]:
        return [DowntimeEvent.from_dict(doc) for doc in self._store.values(DOWNTIME_COLLECTION)]

    def get_downtime(self, downtime_id: str) -> DowntimeEvent:
        document = self._store.get(DOWNTIME_COLLECTION, downtime_id)
        if document is None:
            raise NotFoundError("DowntimeEvent", downtime_id)
        return DowntimeEvent.from_dict(document)

    def active_downtimes(self) -> list[DowntimeEvent]:
        return _newest_first([event for event in self._all_downtimes() if event.is_active])

    def machine_downtimes(
        self, machine_id: str, since: datetime | None = None
    ) -> list[DowntimeEvent]:
        return self.downtime_events(since=since, machine_id=machine_id)

    def downtime_events(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
        machine_id: str | None = None,
        category: DowntimeCategory | None = None,
    ) -> list[DowntimeEvent]:
        """Events whose start lies strictly between ``since`` and ``until``."""
        since_utc = to_utc(since) if since is not None else None
        until_utc = to_utc(until) if until is not None else None
        return _newest_first(
            [
                event
                for event in self._all_downtimes()
                if (machine_id is None or event.machine_id == machine_id)
                and (category is None or event.category is category)
                and (since_utc is None or event.start_time > since_utc)
                and (until_utc is None or event.start_time < until_utc)
            ]
        )

    # ---- dashboard -------------------------------------------------------------

    def shift_dashboard(self) -> dict[str, Any]:
        runtimes = self.all_runtimes()
        counts = {"running": 0, "idle": 0, "down": 0, "maintenance": 0}
        for runtime in runtimes:
            if runtime.status is MachineStatus.RUNNING:
                counts["running"] += 1
            elif runtime.status is MachineStatus.DOWN:
                counts["down"] += 1
            elif runtime.status in (MachineStatus.MAINTENANCE, MachineStatus.SETUP):
                counts["maintenance"] += 1
            else:
                counts["idle"] += 1

        return {
            "total_machines": len(runtimes),
            **counts,
            "active_downtimes": len(self.active_downtimes()),
            "runtimes": [runtime.to_dict() for runtime in runtimes],
        }

    def downtime_summary(
        self, since: datetime | None = None, machine_id: str | None = None
    ) -> dict[DowntimeCategory, int]:
        """Downtime minutes per category. Open events count up to now."""
        now = self._now()
        summary = {category: 0 for category in DowntimeCategory}
        for event in self.downtime_events(since=since, machine_id=machine_id):
            summary[event.category] += event.elapsed_minutes(now)
        return summary
