"""Configuration management for the production integrity subsystem."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/production_integrity.sqlite")
    sqlite_wal: bool = Field(default=True)


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1024, le=65535)


class SyncSettings(BaseModel):
    enabled: bool = Field(
        default=True,
        description="If False, writes are kept local and nothing is queued for replication.",
    )


class ReconciliationSettings(BaseModel):
    variance_threshold_percent: float = Field(
        default=2.0,
        ge=0.0,
        le=100.0,
        description="Absolute variance percent at or below which a count is auto-approved.",
    )


class OEESettings(BaseModel):
    default_cycle_time_seconds: float = Field(default=30.0, gt=0.0)
    shift_start_hours: tuple[int, ...] = Field(default=(6, 14, 22))
    merge_overlapping_downtime: bool = Field(
        default=False,
        description=(
            "If True, overlapping downtime intervals are merged before summing. "
            "The default counts every event separately."
        ),
    )
    plant_timezone: str = Field(default="UTC")

    @field_validator("shift_start_hours")
    @classmethod
    def _validate_shift_start_hours(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("at least one shift start hour is required")
        if any(hour < 0 or hour > 23 for hour in value):
            raise ValueError("shift start hours must be within 0..23")
        if len(set(value)) != len(value):
            raise ValueError("shift start hours must be unique")
        return tuple(sorted(value))


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)
    oee: OEESettings = Field(default_factory=OEESettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "host": "HTTP_HOST",
    "port": "HTTP_PORT",
    "sync_enabled": "REMOTE_SYNC_ENABLED",
    "variance_threshold": "RECONCILIATION_VARIANCE_THRESHOLD",
    "default_cycle_time": "OEE_DEFAULT_CYCLE_TIME",
    "shift_start_hours": "OEE_SHIFT_START_HOURS",
    "merge_downtime": "OEE_MERGE_OVERLAPPING_DOWNTIME",
    "plant_timezone": "PLANT_TIMEZONE",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def _env_hours(key: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = _split_csv(os.getenv(key))
    if not raw:
        return default
    try:
        return tuple(int(item) for item in raw)
    except ValueError:
        _config_logger.warning(
            "Invalid hour list for %s: %r, using default %s", key, raw, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
        },
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
        },
        "sync": {
            "enabled": _env_bool(ENV_KEYS["sync_enabled"], SyncSettings().enabled),
        },
        "reconciliation": {
            "variance_threshold_percent": _env_float(
                ENV_KEYS["variance_threshold"],
                ReconciliationSettings().variance_threshold_percent,
            ),
        },
        "oee": {
            "default_cycle_time_seconds": _env_float(
                ENV_KEYS["default_cycle_time"],
                OEESettings().default_cycle_time_seconds,
            ),
            "shift_start_hours": _env_hours(
                ENV_KEYS["shift_start_hours"],
                OEESettings().shift_start_hours,
            ),
            "merge_overlapping_downtime": _env_bool(
                ENV_KEYS["merge_downtime"],
                OEESettings().merge_overlapping_downtime,
            ),
            "plant_timezone": os.getenv(
                ENV_KEYS["plant_timezone"], OEESettings().plant_timezone
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.storage.sqlite_path != ":memory:":
        Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
