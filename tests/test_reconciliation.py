from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from production_integrity.audit.models import AuditAction
from production_integrity.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from production_integrity.reconciliation.models import ReconciliationStatus, compute_variance
from production_integrity.reconciliation.review import approve_as_reviewer, reject_as_reviewer
from production_integrity.reconciliation.workflow import (
    ENTITY_TYPE,
    RECONCILIATION_COLLECTION,
    ReconciliationWorkflow,
)

from conftest import T0


def _create(workflow, reporter, system=1000, physical=1050, machine="m-1"):
    return workflow.create(machine, "job-1", system, physical, "shift count", reporter)


def test_matching_count_is_auto_approved(workflow, ledger, operator):
    record = _create(workflow, operator, system=1000, physical=1000)

    assert record.status is ReconciliationStatus.APPROVED
    assert record.auto_approved
    assert record.variance == 0
    assert record.variance_percent == 0.0
    assert record.resolved_at == T0
    assert workflow.pending() == []

    entries = ledger.query_by_entity(ENTITY_TYPE, record.id)
    assert [entry.action for entry in entries] == [AuditAction.RECONCILIATION]
    assert entries[0].metadata["auto_approved"] is True


def test_large_variance_waits_for_approval(workflow, ledger, operator, manager, clock):
    record = _create(workflow, operator, system=1000, physical=1050)

    assert record.variance == 50
    assert record.variance_percent == pytest.approx(5.0)
    assert record.status is ReconciliationStatus.PENDING
    assert not record.auto_approved
    assert [r.id for r in workflow.pending()] == [record.id]

    clock.advance(minutes=5)
    approved = workflow.approve(record.id, manager)

    assert approved.status is ReconciliationStatus.APPROVED
    assert approved.resolved_by_id == "mgr-1"
    assert approved.resolved_at == T0 + timedelta(minutes=5)
    assert workflow.get(record.id) == approved
    assert workflow.pending() == []

    actions = [entry.action for entry in ledger.query_by_entity(ENTITY_TYPE, record.id)]
    assert actions == [AuditAction.APPROVAL, AuditAction.RECONCILIATION]


def test_negative_variance(workflow, operator):
    record = _create(workflow, operator, system=200, physical=190)

    assert record.variance == -10
    assert record.variance_percent == pytest.approx(-5.0)
    assert record.status is ReconciliationStatus.PENDING


def test_zero_system_counter_has_zero_percent(workflow, operator):
    record = _create(workflow, operator, system=0, physical=25)

    assert record.variance == 25
    assert record.variance_percent == 0.0
    assert record.status is ReconciliationStatus.APPROVED


def test_variance_exactly_at_threshold_is_auto_approved(workflow, operator):
    at_threshold = _create(workflow, operator, system=100, physical=102)
    above = _create(workflow, operator, system=100, physical=103)

    assert at_threshold.status is ReconciliationStatus.APPROVED
    assert above.status is ReconciliationStatus.PENDING


@pytest.mark.parametrize(
    ("system", "physical"),
    [
        (0, 0),
        (0, 500),
        (1, 0),
        (50, 51),
        (100, 98),
        (100, 97),
        (100, 102),
        (100, 103),
        (1000, 1020),
        (1000, 1021),
        (1000, 979),
        (1000, 980),
        (3, 3),
        (7, 9),
    ],
)
def test_auto_approved_iff_variance_within_threshold(workflow, operator, system, physical):
    record = _create(workflow, operator, system=system, physical=physical)

    _, percent = compute_variance(system, physical)
    within = abs(percent) <= workflow.threshold_percent
    assert record.variance_percent == percent
    assert (record.status is ReconciliationStatus.APPROVED) == within
    assert record.auto_approved == within
    assert record.is_pending != within


def test_threshold_is_configurable(store, ledger, sync, operator):
    strict = ReconciliationWorkflow(store, ledger, sync, threshold_percent=0.0)
    assert _create(strict, operator, system=100, physical=101).is_pending
    assert not _create(strict, operator, system=100, physical=100).is_pending


def test_counters_are_validated(workflow, operator):
    with pytest.raises(ValidationError):
        _create(workflow, operator, system=-1, physical=0)
    with pytest.raises(ValidationError):
        _create(workflow, operator, system=10, physical=True)
    with pytest.raises(ValidationError):
        workflow.create("m-1", "", 10, 10, "count", operator)


def test_reject_requires_reason_and_keeps_pending(workflow, ledger, operator, manager):
    record = _create(workflow, operator)

    with pytest.raises(ValidationError):
        workflow.reject(record.id, manager, "  ")

    assert workflow.get(record.id).status is ReconciliationStatus.PENDING
    actions = [entry.action for entry in ledger.query_by_entity(ENTITY_TYPE, record.id)]
    assert actions == [AuditAction.RECONCILIATION]


def test_reject_records_reason(workflow, ledger, operator, manager):
    record = _create(workflow, operator)

    rejected = workflow.reject(record.id, manager, "Recount needed")

    assert rejected.status is ReconciliationStatus.REJECTED
    assert rejected.rejection_reason == "Recount needed"
    latest = ledger.query_by_entity(ENTITY_TYPE, record.id)[0]
    assert latest.action is AuditAction.REJECTION
    assert latest.reason == "Recount needed"


def test_resolved_records_are_terminal(workflow, operator, manager):
    record = _create(workflow, operator)
    workflow.approve(record.id, manager)

    with pytest.raises(InvalidStateError):
        workflow.approve(record.id, manager)
    with pytest.raises(InvalidStateError):
        workflow.reject(record.id, manager, "too late")

    auto = _create(workflow, operator, system=10, physical=10)
    with pytest.raises(InvalidStateError):
        workflow.approve(auto.id, manager)


def test_unknown_record(workflow, manager):
    with pytest.raises(NotFoundError):
        workflow.approve("missing", manager)
    with pytest.raises(NotFoundError):
        workflow.get("missing")


def test_losing_concurrent_reviewer_gets_invalid_state(workflow, store, operator, manager):
    record = _create(workflow, operator)

    with patch.object(store, "compare_and_put", return_value=False):
        with pytest.raises(InvalidStateError, match="concurrently"):
            workflow.approve(record.id, manager)

    assert workflow.get(record.id).is_pending


def test_revision_guard_rejects_stale_write(workflow, store, operator, manager):
    record = _create(workflow, operator)
    stale = store.get_versioned(RECONCILIATION_COLLECTION, record.id)

    workflow.approve(record.id, manager)

    assert not store.compare_and_put(
        RECONCILIATION_COLLECTION, record.id, stale.document, stale.revision
    )
    assert workflow.get(record.id).status is ReconciliationStatus.APPROVED


def test_queries_are_newest_first(workflow, operator, manager, clock):
    first = _create(workflow, operator, machine="m-1")
    clock.advance(minutes=1)
    second = _create(workflow, operator, machine="m-2", system=10, physical=10)
    clock.advance(minutes=1)
    third = _create(workflow, operator, machine="m-1")

    assert [r.id for r in workflow.all()] == [third.id, second.id, first.id]
    assert [r.id for r in workflow.pending()] == [third.id, first.id]
    assert [r.id for r in workflow.history()] == [second.id]
    assert [r.id for r in workflow.for_machine("m-1")] == [third.id, first.id]


def test_reviewer_needs_manager_level(workflow, operator, setter, manager):
    record = _create(workflow, operator)

    with pytest.raises(PermissionDeniedError):
        approve_as_reviewer(workflow, record.id, setter)
    with pytest.raises(PermissionDeniedError):
        reject_as_reviewer(workflow, record.id, operator, "no")
    assert workflow.get(record.id).is_pending

    approved = approve_as_reviewer(workflow, record.id, manager)
    assert approved.status is ReconciliationStatus.APPROVED


def test_compute_variance():
    assert compute_variance(1000, 1050) == (50, 5.0)
    assert compute_variance(0, 0) == (0, 0.0)
