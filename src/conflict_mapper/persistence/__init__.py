"""Scan history persistence (SQLite)."""

from .database import SnapshotDB
from .store import SnapshotStore
from .writer import normalize_timestamp, validate_snapshot

__all__ = ["SnapshotDB", "SnapshotStore", "validate_snapshot", "normalize_timestamp"]
