"""Starlette HTTP server assembly for the read-only query surface."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from production_integrity import __version__
from production_integrity.app import AppContext, get_app_context
from production_integrity.audit.models import AuditAction
from production_integrity.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ProductionIntegrityError,
    ValidationError,
)
from production_integrity.utils.time import parse_timestamp

logger = logging.getLogger(__name__)

_DEFAULT_LIMIT = 50
_MAX_LIMIT = 1000


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _query_limit(request: Request, default: int = _DEFAULT_LIMIT) -> int:
    raw = request.query_params.get("limit")
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValidationError(f"limit must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValidationError("limit must not be negative")
    return min(value, _MAX_LIMIT)


def _query_datetime(request: Request, name: str) -> datetime | None:
    raw = request.query_params.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse_timestamp(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"{name} must be an ISO-8601 timestamp, got {raw!r}") from exc


def _query_float(request: Request, name: str) -> float | None:
    raw = request.query_params.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from exc


def _query_action(request: Request) -> AuditAction | None:
    raw = request.query_params.get("action")
    if raw is None or raw.strip() == "":
        return None
    try:
        return AuditAction(raw.strip())
    except ValueError as exc:
        raise ValidationError(f"Unknown audit action: {raw!r}") from exc


# ---- handlers -----------------------------------------------------------------
# Store-backed calls run in a worker thread via asyncio.to_thread.


def _entries_payload(entries) -> dict:
    return {"entries": [entry.to_dict() for entry in entries]}


async def health_handler(request: Request) -> Response:
    return JSONResponse({"status": "healthy", "version": __version__})


async def audit_recent_handler(request: Request) -> Response:
    limit = _query_limit(request)
    entries = await asyncio.to_thread(_context(request).ledger.query_recent, limit=limit)
    return JSONResponse(_entries_payload(entries))


async def audit_entity_handler(request: Request) -> Response:
    entries = await asyncio.to_thread(
        _context(request).ledger.query_by_entity,
        request.path_params["entity_type"],
        request.path_params["entity_id"],
    )
    return JSONResponse(_entries_payload(entries))


async def audit_user_handler(request: Request) -> Response:
    limit = _query_limit(request)
    entries = await asyncio.to_thread(
        _context(request).ledger.query_by_user, request.path_params["user_id"], limit=limit
    )
    return JSONResponse(_entries_payload(entries))


async def audit_overrides_handler(request: Request) -> Response:
    limit = _query_limit(request)
    entries = await asyncio.to_thread(_context(request).ledger.query_overrides, limit=limit)
    return JSONResponse(_entries_payload(entries))


async def audit_export_handler(request: Request) -> Response:
    start = _query_datetime(request, "start")
    end = _query_datetime(request, "end")
    action = _query_action(request)
    rows = await asyncio.to_thread(
        _context(request).ledger.export,
        start=start,
        end=end,
        entity_type=request.query_params.get("entity_type") or None,
        action=action,
    )
    return JSONResponse({"count": len(rows), "entries": rows})


async def reconciliations_pending_handler(request: Request) -> Response:
    records = await asyncio.to_thread(_context(request).reconciliation.pending)
    return JSONResponse({"reconciliations": [record.to_dict() for record in records]})


async def reconciliation_detail_handler(request: Request) -> Response:
    record = await asyncio.to_thread(
        _context(request).reconciliation.get, request.path_params["record_id"]
    )
    return JSONResponse(record.to_dict())


async def runtime_dashboard_handler(request: Request) -> Response:
    dashboard = await asyncio.to_thread(_context(request).tracker.shift_dashboard)
    return JSONResponse(dashboard)


async def downtime_active_handler(request: Request) -> Response:
    events = await asyncio.to_thread(_context(request).tracker.active_downtimes)
    return JSONResponse({"downtimes": [event.to_dict() for event in events]})


async def oee_window_handler(request: Request) -> Response:
    start = _query_datetime(request, "start")
    end = _query_datetime(request, "end")
    if start is None or end is None:
        raise ValidationError("start and end query parameters are required")
    result = await asyncio.to_thread(
        _context(request).oee.calculate,
        request.path_params["machine_id"],
        start,
        end,
        target_cycle_time=_query_float(request, "target_cycle_time"),
    )
    return JSONResponse(result.to_dict())


async def oee_shift_handler(request: Request) -> Response:
    oee = _context(request).oee
    target_cycle_time = _query_float(request, "target_cycle_time")
    shift_start, now = oee.current_shift_window()
    result = await asyncio.to_thread(
        oee.calculate,
        request.path_params["machine_id"],
        shift_start,
        now,
        target_cycle_time=target_cycle_time,
    )
    payload = result.to_dict()
    payload["shift_start"] = shift_start.isoformat()
    return JSONResponse(payload)


# ---- error mapping ------------------------------------------------------------

_STATUS_BY_ERROR: tuple[tuple[type[ProductionIntegrityError], int], ...] = (
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (InvalidStateError, 409),
)


async def domain_error_handler(request: Request, exc: Exception) -> Response:
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("Unhandled domain error on %s", request.url.path, exc_info=exc)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(
        {"error": type(exc).__name__, "message": str(exc)}, status_code=status_code
    )


def create_http_app(context: AppContext | None = None) -> Starlette:
    """Create the HTTP application.

    Without an explicit context the process-wide one is built on first use.
    """
    routes = [
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/audit/recent", endpoint=audit_recent_handler, methods=["GET"]),
        Route(
            "/audit/entity/{entity_type}/{entity_id}",
            endpoint=audit_entity_handler,
            methods=["GET"],
        ),
        Route("/audit/user/{user_id}", endpoint=audit_user_handler, methods=["GET"]),
        Route("/audit/overrides", endpoint=audit_overrides_handler, methods=["GET"]),
        Route("/audit/export", endpoint=audit_export_handler, methods=["GET"]),
        Route(
            "/reconciliations/pending",
            endpoint=reconciliations_pending_handler,
            methods=["GET"],
        ),
        Route(
            "/reconciliations/{record_id}",
            endpoint=reconciliation_detail_handler,
            methods=["GET"],
        ),
        Route("/runtime/dashboard", endpoint=runtime_dashboard_handler, methods=["GET"]),
        Route("/downtime/active", endpoint=downtime_active_handler, methods=["GET"]),
        Route("/oee/{machine_id}", endpoint=oee_window_handler, methods=["GET"]),
        Route("/oee/{machine_id}/shift", endpoint=oee_shift_handler, methods=["GET"]),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting production integrity HTTP server v%s", __version__)
        try:
            yield
        finally:
            logger.info("Stopping production integrity HTTP server...")

    app = Starlette(
        routes=routes,
        exception_handlers={ProductionIntegrityError: domain_error_handler},
        lifespan=lifespan,
    )
    app.state.context = context if context is not None else get_app_context()
    return app
