from __future__ import annotations

from unittest.mock import patch

import pytest

from production_integrity.app import build_app_context, get_app_context
from production_integrity.config import Settings
from production_integrity.runtime.models import DowntimeCategory
from production_integrity.storage.sync import NullSync, OutboxSync

from conftest import FakeClock


def _settings(db_path: str, **overrides) -> Settings:
    data = {
        "storage": {"sqlite_path": db_path},
        "reconciliation": {"variance_threshold_percent": 5.0},
        "oee": {"default_cycle_time_seconds": 40.0, "merge_overlapping_downtime": True},
    }
    data.update(overrides)
    return Settings.model_validate(data)


@pytest.fixture
def clean_context():
    get_app_context.cache_clear()
    yield
    get_app_context.cache_clear()


def test_build_app_context_wires_shared_store(db_path):
    context = build_app_context(_settings(db_path), clock=FakeClock())
    try:
        assert isinstance(context.sync, OutboxSync)
        assert context.reconciliation.threshold_percent == 5.0

        context.catalog.register("m-1", "Press 1")
        context.tracker.start_downtime("m-1", DowntimeCategory.OTHER, "x")
        assert context.ledger.query_recent()
        assert context.sync.pending()
    finally:
        context.store.close()


def test_sync_disabled_uses_null_sync(db_path):
    context = build_app_context(_settings(db_path, sync={"enabled": False}), clock=FakeClock())
    try:
        assert isinstance(context.sync, NullSync)
    finally:
        context.store.close()


@patch("production_integrity.app.load_settings")
def test_get_app_context_is_cached(mock_load_settings, db_path, clean_context):
    mock_load_settings.return_value = _settings(db_path)

    first = get_app_context()
    try:
        assert get_app_context() is first
        mock_load_settings.assert_called_once()
    finally:
        first.store.close()
