"""Read scan snapshots back from the history database."""

import json
import sqlite3
from dataclasses import replace
from typing import Any, Optional

from ..exceptions import PersistenceError
from ..models import ScanSnapshot, ScanSummary
from ..serialization import snapshot_from_dict


def get_scan(conn: sqlite3.Connection, scan_id: int) -> Optional[ScanSnapshot]:
    """Load a complete snapshot by its primary key, or ``None`` if absent."""
    row = conn.execute("SELECT id, full_data FROM scans WHERE id = ?", (scan_id,)).fetchone()
    if row is None:
        return None
    return _hydrate(row)


def latest_scan(conn: sqlite3.Connection) -> Optional[ScanSnapshot]:
    """The most recently saved snapshot, or ``None`` for an empty history."""
    row = conn.execute("SELECT id, full_data FROM scans ORDER BY id DESC LIMIT 1").fetchone()
    if row is None:
        return None
    return _hydrate(row)


def list_scans(conn: sqlite3.Connection, limit: int = 20, offset: int = 0) -> list[ScanSummary]:
    """List scans newest first, without their full payload."""
    rows = conn.execute(
        """
        SELECT id, timestamp, plugin_count, conflict_count, overlap_count,
               scan_type, fingerprint
        FROM scans
        ORDER BY id DESC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    ).fetchall()

    return [
        ScanSummary(
            id=row["id"],
            timestamp=row["timestamp"],
            plugin_count=row["plugin_count"],
            conflict_count=row["conflict_count"],
            overlap_count=row["overlap_count"],
            scan_type=row["scan_type"],
            fingerprint=row["fingerprint"],
        )
        for row in rows
    ]


def statistics(conn: sqlite3.Connection) -> dict[str, Any]:
    """Aggregate history figures.

    Returns
    -------
    dict
        total_scans, average_conflicts, average_plugins, last_scan
        (timestamp or None) and high_severity_conflicts (High + Critical
        rows across all scans).
    """
    row = conn.execute(
        """
        SELECT COUNT(*) AS total_scans,
               AVG(conflict_count) AS average_conflicts,
               AVG(plugin_count) AS average_plugins,
               MAX(timestamp) AS last_scan
        FROM scans
        """
    ).fetchone()
    high = conn.execute(
        "SELECT COUNT(*) FROM conflicts WHERE severity IN ('High', 'Critical')"
    ).fetchone()[0]

    return {
        "total_scans": row["total_scans"],
        "average_conflicts": round(row["average_conflicts"] or 0.0, 2),
        "average_plugins": round(row["average_plugins"] or 0.0, 2),
        "last_scan": row["last_scan"],
        "high_severity_conflicts": high,
    }


def _hydrate(row: sqlite3.Row) -> ScanSnapshot:
    raw = row["full_data"]
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        snapshot = snapshot_from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError) as e:
        raise PersistenceError(
            f"Stored scan {row['id']} is unreadable: {e}", context={"scan_id": row["id"]}
        ) from e
    return replace(snapshot, id=row["id"])
