"""Response envelopes for embedding callers (HTTP handlers, admin UIs).

Every function returns a JSON-safe dict::

    {"success": True, "data": ..., "warnings": [...]}
    {"success": False, "code": "CM100", "message": "..."}

Scan, persistence and timeout failures become error envelopes; any other
exception propagates.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Callable

from .analysis.report import health_report, snapshot_report
from .context import AppContext
from .exceptions import PersistenceError, ScanError, ScanTimeoutError
from .logging_config import get_logger
from .models import ScanSnapshot
from .serialization import plugin_to_dict, snapshot_to_dict

logger = get_logger(__name__)

NOT_FOUND = "NOT_FOUND"

_SURFACED_ERRORS = (ScanError, PersistenceError, ScanTimeoutError)


def error_response(code: str, message: str) -> dict[str, Any]:
    return {"success": False, "code": code, "message": message}


def success_response(data: Any, warnings: Any = ()) -> dict[str, Any]:
    return {"success": True, "data": to_jsonable(data), "warnings": list(warnings)}


def to_jsonable(value: Any) -> Any:
    if isinstance(value, ScanSnapshot):
        return snapshot_to_dict(value)
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def handle(operation: Callable[[], Any]) -> dict[str, Any]:
    """Run ``operation`` and wrap its outcome in a response envelope."""
    try:
        result = operation()
    except _SURFACED_ERRORS as e:
        logger.warning(f"Request failed: {e}")
        return error_response(e.code.value, e.message)
    warnings = result.warnings if isinstance(result, ScanSnapshot) else ()
    return success_response(result, warnings)


# ── endpoints ─────────────────────────────────────────────────────


def run_scan(ctx: AppContext, force: bool = False) -> dict[str, Any]:
    try:
        snapshot = ctx.run_full_scan(force=force)
    except _SURFACED_ERRORS as e:
        return error_response(e.code.value, e.message)
    return success_response(snapshot_report(snapshot), snapshot.warnings)


def list_plugins(ctx: AppContext) -> dict[str, Any]:
    def _list() -> list[dict[str, Any]]:
        result = ctx.scanner.scan()
        return [plugin_to_dict(p) for p in result.plugins]

    return handle(_list)


def get_scan(ctx: AppContext, scan_id: int) -> dict[str, Any]:
    try:
        snapshot = ctx.store.get_scan(scan_id)
    except _SURFACED_ERRORS as e:
        return error_response(e.code.value, e.message)
    if snapshot is None:
        return error_response(NOT_FOUND, f"Scan {scan_id} not found")
    return success_response(snapshot_report(snapshot), snapshot.warnings)


def list_scans(ctx: AppContext, limit: int = 20, offset: int = 0) -> dict[str, Any]:
    return handle(lambda: ctx.store.list_scans(limit=limit, offset=offset))


def get_stats(ctx: AppContext) -> dict[str, Any]:
    return handle(ctx.store.statistics)


def plugin_health(ctx: AppContext) -> dict[str, Any]:
    """Performance and security reports for the currently installed plugins."""

    def _health() -> dict[str, Any]:
        result = ctx.scanner.scan()
        return health_report(result.plugins)

    return handle(_health)
