"""Append-only snapshot store over a single history database connection."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..exceptions import PersistenceError
from ..models import ScanSnapshot, ScanSummary
from . import reader, writer
from .database import SnapshotDB


class SnapshotStore:
    """Thread-safe facade used by the application context and the CLI.

    Saved snapshots are never updated; ``delete_old_scans`` is the only way
    rows leave the database.

    Usage::

        with SnapshotStore(config.db_path) as store:
            scan_id = store.save_scan(snapshot)
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db = SnapshotDB(db_path)

    def open(self) -> "SnapshotStore":
        self.db.connect()
        return self

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "SnapshotStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _read(self, fn, *args):
        with self.db.lock:
            try:
                return fn(self.db.conn, *args)
            except sqlite3.Error as e:
                raise PersistenceError(f"History read failed: {e}") from e

    # ── writes ────────────────────────────────────────────────────

    def save_scan(self, snapshot: ScanSnapshot) -> int:
        with self.db.lock:
            return writer.save_scan(self.db.conn, snapshot)

    def delete_old_scans(self, older_than: datetime) -> int:
        with self.db.lock:
            return writer.delete_old_scans(self.db.conn, older_than)

    # ── reads ─────────────────────────────────────────────────────

    def get_scan(self, scan_id: int) -> Optional[ScanSnapshot]:
        return self._read(reader.get_scan, scan_id)

    def latest_scan(self) -> Optional[ScanSnapshot]:
        return self._read(reader.latest_scan)

    def list_scans(self, limit: int = 20, offset: int = 0) -> list[ScanSummary]:
        return self._read(reader.list_scans, limit, offset)

    def statistics(self) -> dict[str, Any]:
        return self._read(reader.statistics)
