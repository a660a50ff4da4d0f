"""SQLite-backed scan history stored as ``history.db`` in the data directory."""

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from ..exceptions import PersistenceError
from ..logging_config import get_logger

logger = get_logger(__name__)

# Current schema version (bump when tables change).
_SCHEMA_VERSION = 1

IN_MEMORY = ":memory:"


class SnapshotDB:
    """Manages the ``history.db`` SQLite database.

    ``db_path`` may be ``":memory:"`` for an ephemeral database that lives
    as long as the connection.

    Usage::

        with SnapshotDB(config.db_path) as db:
            save_scan(db.conn, snapshot)
    """

    def __init__(self, db_path: str | Path) -> None:
        self.in_memory = str(db_path) == IN_MEMORY
        self.db_path: Path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self.lock = threading.RLock()

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("SnapshotDB is not connected. Use as context manager or call connect().")
        return self._conn

    # ── lifecycle ─────────────────────────────────────────────────

    def _ensure_dir(self) -> None:
        """Create the data directory and keep it out of version control."""
        db_dir = self.db_path.parent
        db_dir.mkdir(parents=True, exist_ok=True)
        gitignore = db_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text("*\n")

    def connect(self) -> sqlite3.Connection:
        """Open (or create) the database and run migrations."""
        try:
            if self.in_memory:
                conn = sqlite3.connect(IN_MEMORY, check_same_thread=False)
            else:
                self._ensure_dir()
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.row_factory = sqlite3.Row
            self._conn = conn
            self._migrate()
        except (sqlite3.Error, OSError) as e:
            self.close()
            raise PersistenceError(
                f"Cannot open history database: {e}", context={"db_path": str(self.db_path)}
            ) from e
        logger.debug("History DB connected at %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SnapshotDB":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── migration ─────────────────────────────────────────────────

    def _migrate(self) -> None:
        """Idempotently create all tables."""
        c = self.conn

        c.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER NOT NULL
            )
            """
        )
        row = c.execute("SELECT version FROM schema_version").fetchone()
        if row is None:
            c.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (_SCHEMA_VERSION,),
            )

        # ── scans ─────────────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS scans (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp       TEXT    NOT NULL,
                plugin_count    INTEGER NOT NULL DEFAULT 0,
                conflict_count  INTEGER NOT NULL DEFAULT 0,
                overlap_count   INTEGER NOT NULL DEFAULT 0,
                scan_type       TEXT    NOT NULL DEFAULT 'full',
                fingerprint     TEXT    NOT NULL DEFAULT '',
                full_data       BLOB    NOT NULL
            )
            """
        )

        # ── conflicts ─────────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS conflicts (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                scan_id     INTEGER NOT NULL REFERENCES scans(id) ON DELETE CASCADE,
                type        TEXT    NOT NULL,
                severity    TEXT    NOT NULL,
                hook_name   TEXT,
                plugin_ids  TEXT    NOT NULL DEFAULT '[]',
                description TEXT    NOT NULL DEFAULT ''
            )
            """
        )

        c.execute("CREATE INDEX IF NOT EXISTS idx_scans_timestamp ON scans(timestamp)")
        c.execute("CREATE INDEX IF NOT EXISTS idx_scans_fingerprint ON scans(fingerprint)")
        c.execute("CREATE INDEX IF NOT EXISTS idx_conflicts_scan ON conflicts(scan_id)")
        c.execute("CREATE INDEX IF NOT EXISTS idx_conflicts_severity ON conflicts(severity)")

        c.commit()
