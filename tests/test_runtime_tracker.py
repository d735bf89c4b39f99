from __future__ import annotations

from datetime import timedelta

import pytest

from production_integrity.audit.models import AuditAction
from production_integrity.auth.context import actor_scope
from production_integrity.errors import InvalidStateError, NotFoundError
from production_integrity.runtime.models import (
    DowntimeCategory,
    DowntimeEvent,
    MachineRuntime,
    MachineStatus,
)
from production_integrity.runtime.tracker import DOWNTIME_COLLECTION, RUNTIME_COLLECTION

from conftest import T0


@pytest.fixture
def press(catalog):
    return catalog.register("m-1", "Press 1", cycle_time_seconds=24.0)


def test_update_status_writes_projection_and_audit(tracker, ledger, press, operator):
    runtime = tracker.update_status(
        "m-1", MachineStatus.RUNNING, job_id="job-7", mould_id="mould-3", actor=operator
    )

    assert runtime.machine_name == "Press 1"
    assert runtime.status is MachineStatus.RUNNING
    assert runtime.status_since == T0
    assert runtime.target_cycle_time == 24.0
    assert tracker.get_runtime("m-1") == runtime

    entry = ledger.query_by_entity("MachineRuntime", "m-1")[0]
    assert entry.action is AuditAction.STATUS_CHANGE
    assert entry.before_value == {"status": "unknown"}
    assert entry.after_value == {"status": "running"}
    assert entry.metadata == {"job_id": "job-7", "mould_id": "mould-3"}


def test_update_status_keeps_job_and_counts(tracker, press, clock):
    tracker.update_status("m-1", MachineStatus.RUNNING, job_id="job-7", mould_id="mould-3")
    tracker.record_cycle("m-1", 23.5, good_parts=4, scrap_parts=1)

    clock.advance(minutes=10)
    runtime = tracker.update_status("m-1", MachineStatus.IDLE)

    assert runtime.current_job_id == "job-7"
    assert runtime.current_mould_id == "mould-3"
    assert runtime.cycle_count == 1
    assert runtime.good_parts == 4
    assert runtime.status_since == T0 + timedelta(minutes=10)


def test_any_transition_is_allowed_and_audited(tracker, ledger, press):
    for status in (MachineStatus.DOWN, MachineStatus.DOWN, MachineStatus.SETUP):
        tracker.update_status("m-1", status)

    statuses = [
        (entry.before_value["status"], entry.after_value["status"])
        for entry in reversed(ledger.query_by_entity("MachineRuntime", "m-1"))
    ]
    assert statuses == [("unknown", "down"), ("down", "down"), ("down", "setup")]


def test_uncatalogued_machine_gets_unknown_name(tracker):
    assert tracker.update_status("m-x", MachineStatus.IDLE).machine_name == "Unknown"


def test_record_cycle_counts(tracker, press):
    tracker.update_status("m-1", MachineStatus.RUNNING)

    tracker.record_cycle("m-1", 25.0)
    runtime = tracker.record_cycle("m-1", 23.0, good_parts=2, scrap_parts=1)

    assert runtime.cycle_count == 2
    assert runtime.last_cycle_time == 23.0
    assert (runtime.good_parts, runtime.scrap_parts) == (3, 1)
    assert tracker.get_runtime("m-1") == runtime


def test_record_cycle_without_projection_is_ignored(tracker, store):
    assert tracker.record_cycle("m-1", 25.0) is None
    assert store.get(RUNTIME_COLLECTION, "m-1") is None


def test_start_downtime_marks_machine_down(tracker, ledger, press, operator):
    event = tracker.start_downtime(
        "m-1", DowntimeCategory.MECHANICAL, "Ejector jammed", reporter=operator
    )

    assert event.is_active
    assert event.start_time == T0
    assert event.reported_by == "op-1"
    assert tracker.get_runtime("m-1").status is MachineStatus.DOWN
    assert tracker.active_downtimes() == [event]

    created = ledger.query_by_entity("DowntimeEvent", event.id)
    assert [entry.action for entry in created] == [AuditAction.CREATE]


def test_planned_downtime_marks_machine_maintenance(tracker, press):
    tracker.start_downtime("m-1", DowntimeCategory.PLANNED, "PM", is_planned=True)
    assert tracker.get_runtime("m-1").status is MachineStatus.MAINTENANCE


def test_end_downtime_sets_duration_and_idles(tracker, ledger, press, clock, setter):
    event = tracker.start_downtime("m-1", DowntimeCategory.ELECTRICAL, "Heater band")
    clock.advance(minutes=42, seconds=59)

    closed = tracker.end_downtime(event.id, resolver=setter)

    assert closed.end_time == T0 + timedelta(minutes=42, seconds=59)
    assert closed.duration_minutes == 42
    assert closed.resolved_by == "set-1"
    assert tracker.get_runtime("m-1").status is MachineStatus.IDLE
    assert tracker.active_downtimes() == []
    assert tracker.get_downtime(event.id) == closed

    update = ledger.query_by_entity("DowntimeEvent", event.id)[0]
    assert update.action is AuditAction.UPDATE
    assert update.after_value["duration_minutes"] == 42


def test_end_downtime_errors(tracker, press):
    with pytest.raises(NotFoundError):
        tracker.end_downtime("missing")

    event = tracker.start_downtime("m-1", DowntimeCategory.OTHER, "?")
    tracker.end_downtime(event.id)
    with pytest.raises(InvalidStateError):
        tracker.end_downtime(event.id)


def test_second_start_opens_second_event(tracker, press):
    first = tracker.start_downtime("m-1", DowntimeCategory.MATERIAL, "No resin")
    second = tracker.start_downtime("m-1", DowntimeCategory.QUALITY, "Short shots")

    assert {event.id for event in tracker.active_downtimes()} == {first.id, second.id}


def test_downtime_actor_from_context(tracker, press, manager):
    with actor_scope(manager):
        event = tracker.start_downtime("m-1", DowntimeCategory.SETUP, "Colour change")
    assert event.reported_by == "mgr-1"


def test_downtime_events_filters(tracker, catalog, press, clock):
    catalog.register("m-2", "Press 2")
    early = tracker.start_downtime("m-1", DowntimeCategory.MECHANICAL, "a")
    clock.advance(hours=1)
    other = tracker.start_downtime("m-2", DowntimeCategory.MECHANICAL, "b")
    clock.advance(hours=1)
    late = tracker.start_downtime("m-1", DowntimeCategory.MATERIAL, "c")

    assert [e.id for e in tracker.machine_downtimes("m-1")] == [late.id, early.id]
    assert [e.id for e in tracker.downtime_events(since=T0)] == [late.id, other.id]
    assert [e.id for e in tracker.downtime_events(until=T0 + timedelta(hours=2))] == [
        other.id,
        early.id,
    ]
    assert [
        e.id for e in tracker.downtime_events(category=DowntimeCategory.MATERIAL)
    ] == [late.id]


def test_all_runtimes_includes_unreported_machines(tracker, catalog, press):
    catalog.register("m-2", "Press 2", cycle_time_seconds=30.0)
    tracker.update_status("m-1", MachineStatus.RUNNING)
    tracker.update_status("m-9", MachineStatus.IDLE)

    runtimes = tracker.all_runtimes()

    assert [r.machine_id for r in runtimes] == ["m-1", "m-2", "m-9"]
    assert runtimes[1].status is MachineStatus.UNKNOWN
    assert runtimes[1].target_cycle_time == 30.0


def test_shift_dashboard_counts(tracker, catalog, press):
    for machine_id in ("m-2", "m-3", "m-4", "m-5"):
        catalog.register(machine_id, machine_id.upper())
    tracker.update_status("m-1", MachineStatus.RUNNING)
    tracker.start_downtime("m-2", DowntimeCategory.MECHANICAL, "x")
    tracker.update_status("m-3", MachineStatus.SETUP)
    tracker.start_downtime("m-4", DowntimeCategory.PLANNED, "PM", is_planned=True)

    dashboard = tracker.shift_dashboard()

    assert dashboard["total_machines"] == 5
    assert dashboard["running"] == 1
    assert dashboard["down"] == 1
    assert dashboard["maintenance"] == 2
    assert dashboard["idle"] == 1
    assert dashboard["active_downtimes"] == 2
    assert len(dashboard["runtimes"]) == 5


def test_downtime_summary_counts_open_events_to_now(tracker, press, clock):
    closed = tracker.start_downtime("m-1", DowntimeCategory.MECHANICAL, "a")
    clock.advance(minutes=15)
    tracker.end_downtime(closed.id)
    tracker.start_downtime("m-1", DowntimeCategory.MATERIAL, "b")
    clock.advance(minutes=7, seconds=30)

    summary = tracker.downtime_summary()

    assert summary[DowntimeCategory.MECHANICAL] == 15
    assert summary[DowntimeCategory.MATERIAL] == 7
    assert summary[DowntimeCategory.ELECTRICAL] == 0


def test_downtime_event_dict_falls_back_to_other():
    event = DowntimeEvent.from_dict(
        {
            "id": "d-1",
            "machine_id": "m-1",
            "category": "alien_abduction",
            "reason": "",
            "start_time": "2024-03-04T08:00:00.000000Z",
        }
    )
    assert event.category is DowntimeCategory.OTHER
    assert event.is_active


def test_runtime_dict_falls_back_to_unknown():
    runtime = MachineRuntime.from_dict({"machine_id": "m-1", "status": "exploded"})
    assert runtime.status is MachineStatus.UNKNOWN


def test_downtime_documents_are_queued_for_sync(tracker, sync, press):
    event = tracker.start_downtime("m-1", DowntimeCategory.OTHER, "x")

    queued = {(item.collection, item.key) for item in sync.pending()}
    assert (DOWNTIME_COLLECTION, event.id) in queued
    assert (RUNTIME_COLLECTION, "m-1") in queued
