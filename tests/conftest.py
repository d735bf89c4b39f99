from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from production_integrity.audit.ledger import Ledger
from production_integrity.auth.context import Actor
from production_integrity.auth.roles import UserRole
from production_integrity.oee.calculator import OEECalculator
from production_integrity.oee.production import ProductionLog
from production_integrity.reconciliation.workflow import ReconciliationWorkflow
from production_integrity.runtime.machines import MachineCatalog
from production_integrity.runtime.tracker import RuntimeTracker
from production_integrity.storage.sqlite import SqliteDocumentStore
from production_integrity.storage.sync import OutboxSync

T0 = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock; tests move it forward explicitly."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "production.sqlite")


@pytest.fixture
def store(db_path):
    sqlite_store = SqliteDocumentStore(db_path)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def sync(store):
    return OutboxSync(store)


@pytest.fixture
def ledger(store, sync, clock):
    return Ledger(store, sync, clock=clock)


@pytest.fixture
def catalog(store):
    return MachineCatalog(store)


@pytest.fixture
def tracker(store, ledger, sync, catalog, clock):
    return RuntimeTracker(store, ledger, sync, catalog, clock=clock)


@pytest.fixture
def workflow(store, ledger, sync, clock):
    return ReconciliationWorkflow(store, ledger, sync, threshold_percent=2.0, clock=clock)


@pytest.fixture
def production(store):
    return ProductionLog(store)


@pytest.fixture
def calculator(tracker, production, catalog, clock):
    return OEECalculator(tracker, production, catalog, clock=clock)


@pytest.fixture
def operator() -> Actor:
    return Actor(user_id="op-1", user_name="Olive Operator", role=UserRole.OPERATOR)


@pytest.fixture
def setter() -> Actor:
    return Actor(user_id="set-1", user_name="Sam Setter", role=UserRole.SETTER)


@pytest.fixture
def manager() -> Actor:
    return Actor(
        user_id="mgr-1",
        user_name="Morgan Manager",
        role=UserRole.PRODUCTION_MANAGER,
        device_info="tablet-7",
        ip_address="10.0.0.7",
    )
