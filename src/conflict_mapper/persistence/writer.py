"""Write and prune scan snapshots in the history database."""

import json
import sqlite3
from datetime import datetime, timezone

from ..exceptions import PersistenceError, SnapshotIntegrityError
from ..logging_config import get_logger
from ..models import ScanSnapshot, referenced_plugin_ids
from ..serialization import snapshot_to_dict

logger = get_logger(__name__)


def normalize_timestamp(value: str | datetime) -> str:
    """ISO-8601 UTC with second precision, so stored timestamps sort as text.

    Naive datetimes are taken to be UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def validate_snapshot(snapshot: ScanSnapshot) -> None:
    """Every plugin id mentioned by a record must be in the snapshot's plugin set.

    Raises
    ------
    SnapshotIntegrityError
        Listing the unknown ids.
    """
    known = {p.id for p in snapshot.plugins}
    unknown = sorted(referenced_plugin_ids(snapshot) - known)
    if unknown:
        raise SnapshotIntegrityError(
            f"Snapshot references unknown plugins: {', '.join(unknown)}",
            context={"unknown_plugin_ids": unknown},
        )


def save_scan(conn: sqlite3.Connection, snapshot: ScanSnapshot) -> int:
    """Persist a snapshot to the database.

    All inserts happen inside a single transaction; on any failure the
    transaction is rolled back and nothing is written.

    Parameters
    ----------
    conn:
        An open ``sqlite3.Connection`` (from ``SnapshotDB.connect()``).
    snapshot:
        The ``ScanSnapshot`` to persist. Its ``id`` is ignored.

    Returns
    -------
    int
        The ``scans.id`` of the newly inserted row.

    Raises
    ------
    SnapshotIntegrityError
        If the snapshot references plugins it does not contain.
    PersistenceError
        If the write fails.
    """
    validate_snapshot(snapshot)

    try:
        timestamp = normalize_timestamp(snapshot.timestamp)
    except ValueError as e:
        raise PersistenceError(f"Invalid snapshot timestamp: {snapshot.timestamp!r}") from e

    payload = snapshot_to_dict(snapshot)
    payload["id"] = None
    full_data = json.dumps(payload, sort_keys=True).encode("utf-8")

    cur = conn.cursor()
    try:
        cur.execute("BEGIN")

        cur.execute(
            """
            INSERT INTO scans (
                timestamp, plugin_count, conflict_count, overlap_count,
                scan_type, fingerprint, full_data
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                timestamp,
                snapshot.plugin_count,
                snapshot.conflict_count,
                snapshot.overlap_count,
                snapshot.scan_type,
                snapshot.fingerprint,
                full_data,
            ),
        )
        scan_id = cur.lastrowid
        assert scan_id is not None

        conflict_rows = [
            (
                scan_id,
                c.type.value,
                c.severity.value,
                c.hook_name,
                json.dumps(sorted(c.plugin_ids)),
                c.description,
            )
            for c in snapshot.conflicts
        ]
        if conflict_rows:
            cur.executemany(
                """
                INSERT INTO conflicts (
                    scan_id, type, severity, hook_name, plugin_ids, description
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                conflict_rows,
            )

        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise PersistenceError(f"Failed to save scan: {e}") from e
    except Exception:
        conn.rollback()
        raise

    logger.info(f"Saved scan {scan_id} ({snapshot.plugin_count} plugins)")
    return scan_id


def delete_old_scans(conn: sqlite3.Connection, older_than: datetime) -> int:
    """Delete scans taken before ``older_than``; their conflict rows cascade.

    Returns
    -------
    int
        Number of scans deleted.
    """
    cutoff = normalize_timestamp(older_than)
    try:
        cur = conn.execute("DELETE FROM scans WHERE timestamp < ?", (cutoff,))
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise PersistenceError(f"Failed to delete old scans: {e}") from e
    deleted = cur.rowcount
    logger.info(f"Deleted {deleted} scans older than {cutoff}")
    return deleted
