"""JSON serialization utilities for stored documents."""

from __future__ import annotations

import datetime
import enum
import json
from typing import Any

from production_integrity.utils.time import format_timestamp


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, datetime.datetime):
        return format_timestamp(obj)
    if isinstance(obj, datetime.date):
        return obj.isoformat()
    if isinstance(obj, enum.Enum):
        return obj.value
    return str(obj)


def dumps_document(document: dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=True, sort_keys=True, default=json_default)


def loads_document(payload: str) -> dict[str, Any]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("Stored document is not a JSON object")
    return data
