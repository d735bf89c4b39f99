"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from production_integrity.audit.ledger import Ledger
from production_integrity.config import Settings, load_settings
from production_integrity.oee.calculator import OEECalculator
from production_integrity.oee.production import ProductionLog
from production_integrity.reconciliation.workflow import ReconciliationWorkflow
from production_integrity.runtime.machines import MachineCatalog
from production_integrity.runtime.tracker import RuntimeTracker
from production_integrity.storage.sqlite import SqliteDocumentStore
from production_integrity.storage.sync import NullSync, OutboxSync, RemoteSync
from production_integrity.utils.time import Clock, plant_clock


@dataclass
class AppContext:
    """Application-wide dependency container.

    Every component shares one store and one sync channel. Built once at
    startup and cached for the lifetime of the process.
    """

    settings: Settings
    store: SqliteDocumentStore
    sync: RemoteSync
    ledger: Ledger
    catalog: MachineCatalog
    tracker: RuntimeTracker
    reconciliation: ReconciliationWorkflow
    production: ProductionLog
    oee: OEECalculator


def build_app_context(settings: Settings, clock: Clock | None = None) -> AppContext:
    clock = clock or plant_clock(settings.oee.plant_timezone)
    store = SqliteDocumentStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    sync: RemoteSync = OutboxSync(store) if settings.sync.enabled else NullSync()

    ledger = Ledger(store, sync, clock=clock)
    catalog = MachineCatalog(store)
    tracker = RuntimeTracker(store, ledger, sync, catalog, clock=clock)
    reconciliation = ReconciliationWorkflow(
        store,
        ledger,
        sync,
        threshold_percent=settings.reconciliation.variance_threshold_percent,
        clock=clock,
    )
    production = ProductionLog(store)
    oee = OEECalculator(
        tracker,
        production,
        catalog,
        clock=clock,
        default_cycle_time=settings.oee.default_cycle_time_seconds,
        shift_start_hours=settings.oee.shift_start_hours,
        merge_overlapping_downtime=settings.oee.merge_overlapping_downtime,
    )

    return AppContext(
        settings=settings,
        store=store,
        sync=sync,
        ledger=ledger,
        catalog=catalog,
        tracker=tracker,
        reconciliation=reconciliation,
        production=production,
        oee=oee,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the process-wide application context."""
    return build_app_context(load_settings())
