"""Tests for the SQLite snapshot store."""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from conflict_mapper.exceptions import PersistenceError, SnapshotIntegrityError
from conflict_mapper.models import (
    ConflictRecord,
    ConflictType,
    OverlapCluster,
    RankedPlugin,
    Recommendation,
    ScanSnapshot,
    Severity,
)
from conflict_mapper.persistence import SnapshotDB, SnapshotStore, normalize_timestamp, validate_snapshot
from conflict_mapper.persistence.writer import save_scan

from conftest import make_plugin


def _snapshot(timestamp="2026-01-10T12:00:00+00:00", severity=Severity.HIGH, extra_ids=()):
    plugins = (make_plugin("a", hooks=[("init", 10)]), make_plugin("b", hooks=[("init", 10)]))
    conflict = ConflictRecord(
        type=ConflictType.HOOK_PRIORITY_COLLISION,
        plugin_ids=frozenset({"a", "b", *extra_ids}),
        severity=severity,
        description="a, b collide",
        hook_name="init",
    )
    return ScanSnapshot(
        timestamp=timestamp,
        plugins=plugins,
        conflicts=(conflict,),
        overlaps=(OverlapCluster("seo", ("a", "b"), 1.0, "advice"),),
        ranked=(
            RankedPlugin("a", "A", 73.0, Recommendation.KEEP, {"base_quality": 100.0}),
            RankedPlugin("b", "B", 73.0, Recommendation.KEEP, {"base_quality": 100.0}),
        ),
        warnings=("c: missing version, assuming 0.0.0",),
        fingerprint="f" * 64,
    )


@pytest.fixture
def store(tmp_path):
    with SnapshotStore(tmp_path / "data" / "history.db") as s:
        yield s


class TestSnapshotDB:
    def test_creates_file_and_gitignore(self, tmp_path):
        db_path = tmp_path / "data" / "history.db"
        with SnapshotDB(db_path) as db:
            tables = {r[0] for r in db.conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"schema_version", "scans", "conflicts"} <= tables
        assert db_path.exists()
        assert (tmp_path / "data" / ".gitignore").read_text() == "*\n"

    def test_migration_is_idempotent(self, tmp_path):
        db_path = tmp_path / "history.db"
        with SnapshotDB(db_path):
            pass
        with SnapshotDB(db_path) as db:
            rows = db.conn.execute("SELECT version FROM schema_version").fetchall()
        assert len(rows) == 1

    def test_in_memory(self, tmp_path):
        with SnapshotDB(":memory:") as db:
            assert db.in_memory
        assert list(tmp_path.iterdir()) == []

    def test_conn_requires_connect(self):
        with pytest.raises(RuntimeError):
            SnapshotDB(":memory:").conn

    def test_unopenable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(PersistenceError):
            SnapshotDB(blocker / "history.db").connect()


class TestSaveAndLoad:
    def test_round_trip(self, store):
        snapshot = _snapshot()
        scan_id = store.save_scan(snapshot)
        loaded = store.get_scan(scan_id)
        assert loaded.id == scan_id
        assert loaded.plugins == snapshot.plugins
        assert loaded.conflicts == snapshot.conflicts
        assert loaded.overlaps == snapshot.overlaps
        assert loaded.ranked == snapshot.ranked
        assert loaded.warnings == snapshot.warnings
        assert loaded.fingerprint == snapshot.fingerprint

    def test_ids_increase(self, store):
        first = store.save_scan(_snapshot())
        second = store.save_scan(_snapshot())
        assert second > first

    def test_missing_scan(self, store):
        assert store.get_scan(999) is None

    def test_latest_scan(self, store):
        assert store.latest_scan() is None
        store.save_scan(_snapshot(timestamp="2026-01-01T00:00:00+00:00"))
        newest = store.save_scan(_snapshot(timestamp="2026-01-02T00:00:00+00:00"))
        assert store.latest_scan().id == newest

    def test_conflict_rows_written(self, store):
        scan_id = store.save_scan(_snapshot())
        rows = store.db.conn.execute(
            "SELECT type, severity, hook_name, plugin_ids FROM conflicts WHERE scan_id = ?", (scan_id,)
        ).fetchall()
        assert [tuple(r) for r in rows] == [("HookPriorityCollision", "High", "init", '["a", "b"]')]

    def test_integrity_error_writes_nothing(self, store):
        with pytest.raises(SnapshotIntegrityError) as exc_info:
            store.save_scan(_snapshot(extra_ids=("ghost",)))
        assert exc_info.value.context["unknown_plugin_ids"] == ["ghost"]
        assert store.list_scans() == []

    def test_failed_insert_rolls_back(self, store):
        store.db.conn.execute(
            """
            CREATE TRIGGER reject_conflicts BEFORE INSERT ON conflicts
            BEGIN SELECT RAISE(ABORT, 'rejected'); END
            """
        )
        with pytest.raises(PersistenceError):
            store.save_scan(_snapshot())
        assert store.db.conn.execute("SELECT COUNT(*) FROM scans").fetchone()[0] == 0

    def test_corrupt_payload(self, store):
        scan_id = store.save_scan(_snapshot())
        store.db.conn.execute("UPDATE scans SET full_data = ? WHERE id = ?", (b"not json", scan_id))
        store.db.conn.commit()
        with pytest.raises(PersistenceError):
            store.get_scan(scan_id)


class TestListAndStats:
    def test_list_newest_first(self, store):
        ids = [store.save_scan(_snapshot()) for _ in range(3)]
        summaries = store.list_scans()
        assert [s.id for s in summaries] == list(reversed(ids))
        assert summaries[0].plugin_count == 2
        assert summaries[0].conflict_count == 1
        assert summaries[0].overlap_count == 1

    def test_pagination(self, store):
        ids = [store.save_scan(_snapshot()) for _ in range(5)]
        page = store.list_scans(limit=2, offset=1)
        assert [s.id for s in page] == [ids[3], ids[2]]

    def test_statistics(self, store):
        store.save_scan(_snapshot(timestamp="2026-01-01T00:00:00+00:00", severity=Severity.MEDIUM))
        store.save_scan(_snapshot(timestamp="2026-01-05T00:00:00+00:00", severity=Severity.CRITICAL))
        stats = store.statistics()
        assert stats["total_scans"] == 2
        assert stats["average_conflicts"] == 1.0
        assert stats["average_plugins"] == 2.0
        assert stats["last_scan"] == "2026-01-05T00:00:00+00:00"
        assert stats["high_severity_conflicts"] == 1

    def test_statistics_empty(self, store):
        stats = store.statistics()
        assert stats["total_scans"] == 0
        assert stats["average_conflicts"] == 0.0
        assert stats["last_scan"] is None


class TestDeleteOldScans:
    def test_deletes_and_cascades(self, store):
        store.save_scan(_snapshot(timestamp="2026-01-01T00:00:00+00:00"))
        kept = store.save_scan(_snapshot(timestamp="2026-03-01T00:00:00+00:00"))
        deleted = store.delete_old_scans(datetime(2026, 2, 1, tzinfo=timezone.utc))
        assert deleted == 1
        assert [s.id for s in store.list_scans()] == [kept]
        orphans = store.db.conn.execute(
            "SELECT COUNT(*) FROM conflicts WHERE scan_id NOT IN (SELECT id FROM scans)"
        ).fetchone()[0]
        assert orphans == 0

    def test_offset_timestamps_compare_in_utc(self, store):
        # 01:00 at +02:00 is 23:00 UTC the previous day
        store.save_scan(_snapshot(timestamp="2026-01-02T01:00:00+02:00"))
        cutoff = datetime(2026, 1, 2, 0, 0, tzinfo=timezone.utc)
        assert store.delete_old_scans(cutoff) == 1


class TestHelpers:
    def test_normalize_timestamp(self):
        assert normalize_timestamp("2026-01-02T03:04:05.678Z") == "2026-01-02T03:04:05+00:00"
        assert normalize_timestamp(datetime(2026, 1, 2)) == "2026-01-02T00:00:00+00:00"
        shifted = datetime(2026, 1, 2, 5, tzinfo=timezone(timedelta(hours=5)))
        assert normalize_timestamp(shifted) == "2026-01-02T00:00:00+00:00"

    def test_validate_snapshot(self):
        validate_snapshot(_snapshot())
        with pytest.raises(SnapshotIntegrityError):
            validate_snapshot(_snapshot(extra_ids=("ghost",)))

    def test_invalid_timestamp(self):
        with SnapshotDB(":memory:") as db:
            with pytest.raises(PersistenceError):
                save_scan(db.conn, _snapshot(timestamp="yesterday"))
            assert db.conn.execute("SELECT COUNT(*) FROM scans").fetchone()[0] == 0

    def test_sqlite_row_factory(self):
        with SnapshotDB(":memory:") as db:
            assert db.conn.row_factory is sqlite3.Row
