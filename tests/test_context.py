"""Tests for the application context and full scan pipeline."""

import time
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from conflict_mapper.analysis.ranking import ConstantQuality
from conflict_mapper.cache import MemoryCache, NullCache
from conflict_mapper.config import ScoringConfig
from conflict_mapper.context import Mode, _CommitGate, create_context
from conflict_mapper.events import (
    SCAN_CACHE_HIT,
    SCAN_COMPLETED,
    SCAN_FAILED,
    SCAN_STARTED,
    SNAPSHOT_SAVED,
    EventBus,
)
from conflict_mapper.exceptions import ScanError, ScanTimeoutError
from conflict_mapper.knowledge import CompatibilityTable
from conflict_mapper.models import ConflictType, Recommendation
from conflict_mapper.registry.directory import DirectoryRegistry
from conflict_mapper.registry.static import StaticRegistry
from conflict_mapper.serialization import snapshot_to_dict

FIXED_NOW = datetime(2026, 3, 4, 5, 6, 7, 891000, tzinfo=timezone.utc)


class _SlowRegistry:
    def __init__(self, entries=(), delay=2.0):
        self.entries = list(entries)
        self.delay = delay

    def list_installed(self):
        time.sleep(self.delay)
        return self.entries

    def is_active(self, plugin_id):
        return True


class _BrokenRegistry:
    def list_installed(self):
        raise ScanError("Cannot read plugins directory: /nowhere")

    def is_active(self, plugin_id):
        return True


def _recording_bus():
    bus = EventBus()
    seen = []
    for event in (SCAN_STARTED, SCAN_COMPLETED, SCAN_CACHE_HIT, SCAN_FAILED, SNAPSHOT_SAVED):
        bus.subscribe(event, lambda payload, event=event: seen.append((event, payload)))
    return bus, seen


@pytest.fixture
def ephemeral(test_config, three_plugin_entries):
    bus, seen = _recording_bus()
    ctx = create_context(
        test_config,
        mode=Mode.EPHEMERAL,
        registry=StaticRegistry(three_plugin_entries),
        quality_strategy=ConstantQuality(),
        events=bus,
        known_conflicts=CompatibilityTable.empty(),
        clock=lambda: FIXED_NOW,
    )
    with ctx:
        yield ctx, seen


class TestRunFullScan:
    def test_three_plugin_pipeline(self, ephemeral):
        ctx, _ = ephemeral
        snapshot = ctx.run_full_scan()

        assert [p.id for p in snapshot.plugins] == ["p1", "p2", "p3"]
        (conflict,) = snapshot.conflicts
        assert conflict.type is ConflictType.HOOK_PRIORITY_COLLISION
        assert conflict.plugin_ids == {"p1", "p2"}
        assert snapshot.ranked[0].plugin_id == "p3"
        assert all(r.recommendation is Recommendation.KEEP for r in snapshot.ranked)
        assert snapshot.timestamp == "2026-03-04T05:06:07+00:00"
        assert snapshot.id == 1

    def test_empty_registry(self, test_config):
        with create_context(
            test_config,
            mode=Mode.EPHEMERAL,
            registry=StaticRegistry([]),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            snapshot = ctx.run_full_scan()
        assert snapshot.plugins == ()
        assert snapshot.conflicts == ()
        assert snapshot.overlaps == ()
        assert snapshot.ranked == ()

    def test_cache_hit_returns_same_snapshot(self, ephemeral):
        ctx, seen = ephemeral
        first = ctx.run_full_scan()
        second = ctx.run_full_scan()

        assert second == first
        assert len(ctx.store.list_scans()) == 1
        events = [name for name, _ in seen]
        assert events == [
            SCAN_STARTED,
            SNAPSHOT_SAVED,
            SCAN_COMPLETED,
            SCAN_STARTED,
            SCAN_CACHE_HIT,
            SCAN_COMPLETED,
        ]
        assert seen[-1][1] == {"scan_id": first.id, "cached": True}

    def test_force_bypasses_cache(self, ephemeral):
        ctx, seen = ephemeral
        first = ctx.run_full_scan()
        second = ctx.run_full_scan(force=True)
        assert second.id == first.id + 1
        assert SCAN_CACHE_HIT not in [name for name, _ in seen]

    def test_unreadable_cache_entry_is_recomputed(self, ephemeral):
        ctx, _ = ephemeral
        first = ctx.run_full_scan()
        ctx.cache.set(first.fingerprint, {"format_version": 99})
        second = ctx.run_full_scan()
        assert second.id == first.id + 1

    def test_progress_messages(self, ephemeral):
        ctx, _ = ephemeral
        messages = []
        ctx.run_full_scan(on_progress=messages.append)
        assert messages == ["Scanning plugins...", "Analyzing 3 plugins...", "Saving snapshot..."]

    def test_failing_handler_does_not_break_scan(self, test_config, three_plugin_entries):
        bus = EventBus()

        def explode(payload):
            raise RuntimeError("handler bug")

        bus.subscribe(SCAN_COMPLETED, explode)
        with create_context(
            test_config,
            mode=Mode.EPHEMERAL,
            registry=StaticRegistry(three_plugin_entries),
            events=bus,
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            assert ctx.run_full_scan().plugin_count == 3

    def test_scan_error_propagates_and_emits_failed(self, test_config):
        bus, seen = _recording_bus()
        with create_context(
            test_config,
            mode=Mode.EPHEMERAL,
            registry=_BrokenRegistry(),
            events=bus,
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            with pytest.raises(ScanError):
                ctx.run_full_scan()
        name, payload = seen[-1]
        assert name == SCAN_FAILED
        assert payload["error"]["error_code"] == "CM100"

    @pytest.mark.slow
    def test_timeout(self, test_config):
        config = replace(test_config, scan_timeout_seconds=1)
        with create_context(
            config,
            mode=Mode.EPHEMERAL,
            registry=_SlowRegistry(),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            with pytest.raises(ScanTimeoutError) as exc_info:
                ctx.run_full_scan()
        assert exc_info.value.code.value == "CM500"

    @pytest.mark.slow
    def test_timed_out_scan_leaves_nothing_behind(self, test_config, three_plugin_entries):
        config = replace(test_config, scan_timeout_seconds=1)
        with create_context(
            config,
            mode=Mode.EPHEMERAL,
            registry=_SlowRegistry(three_plugin_entries, delay=1.5),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            with pytest.raises(ScanTimeoutError):
                ctx.run_full_scan()
            # Give the abandoned worker time to reach its commit point.
            time.sleep(2)
            assert ctx.store.list_scans() == []
            assert ctx.cache.stats()["size"] == 0

    def test_unsaved_cache_entry_is_ignored(self, ephemeral):
        ctx, _ = ephemeral
        first = ctx.run_full_scan()
        ctx.cache.set(first.fingerprint, snapshot_to_dict(replace(first, id=None)))
        second = ctx.run_full_scan()
        assert second.id == first.id + 1


class TestCommitGate:
    def test_cancel_before_commit_blocks_writes(self):
        gate = _CommitGate()
        assert gate.cancel() is True
        with pytest.raises(ScanTimeoutError):
            with gate:
                pytest.fail("writes must not run after cancel")

    def test_cancel_after_commit_is_refused(self):
        gate = _CommitGate()
        with gate:
            pass
        assert gate.cancel() is False

    def test_failed_commit_can_still_be_cancelled(self):
        gate = _CommitGate()
        with pytest.raises(RuntimeError):
            with gate:
                raise RuntimeError("write failed")
        assert gate.cancel() is True


class TestModes:
    def test_full_mode_persists_to_disk(self, test_config, plugins_dir):
        with create_context(test_config, registry=DirectoryRegistry(plugins_dir)) as ctx:
            snapshot = ctx.run_full_scan()
        assert test_config.db_path.exists()
        with create_context(test_config, registry=DirectoryRegistry(plugins_dir)) as ctx:
            latest = ctx.get_latest_snapshot()
        assert latest.id == snapshot.id
        assert latest.conflicts == snapshot.conflicts

    def test_read_only_never_writes(self, test_config, three_plugin_entries):
        with create_context(
            test_config,
            mode=Mode.READ_ONLY,
            registry=StaticRegistry(three_plugin_entries),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            snapshot = ctx.run_full_scan()
            assert ctx.get_latest_snapshot() is None
        assert snapshot.id is None
        assert not test_config.db_path.exists()

    def test_ephemeral_uses_memory_backends(self, test_config):
        disk_config = replace(test_config, cache_backend="disk")
        with create_context(
            disk_config,
            mode=Mode.EPHEMERAL,
            registry=StaticRegistry([]),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            assert isinstance(ctx.cache, MemoryCache)
            assert ctx.store.db.in_memory

    def test_disabled_cache(self, test_config, three_plugin_entries):
        config = replace(test_config, cache_enabled=False)
        with create_context(
            config,
            mode=Mode.EPHEMERAL,
            registry=StaticRegistry(three_plugin_entries),
            known_conflicts=CompatibilityTable.empty(),
        ) as ctx:
            assert isinstance(ctx.cache, NullCache)
            first = ctx.run_full_scan()
            second = ctx.run_full_scan()
        assert second.id == first.id + 1

    def test_config_hash_changes_with_scoring(self, test_config):
        def _hash(config):
            with create_context(
                config,
                mode=Mode.EPHEMERAL,
                registry=StaticRegistry([]),
                known_conflicts=CompatibilityTable.empty(),
            ) as ctx:
                return ctx.config_hash

        changed = replace(test_config, scoring=ScoringConfig(overlap_weight=5.0))
        assert _hash(test_config) != _hash(changed)

    def test_read_only_scan_does_not_mask_full_scan(self, test_config, three_plugin_entries):
        config = replace(test_config, cache_backend="disk")

        def _context(mode):
            return create_context(
                config,
                mode=mode,
                registry=StaticRegistry(three_plugin_entries),
                quality_strategy=ConstantQuality(),
                known_conflicts=CompatibilityTable.empty(),
            )

        with _context(Mode.READ_ONLY) as ctx:
            assert ctx.run_full_scan().id is None
            assert ctx.cache.stats()["size"] == 0

        with _context(Mode.FULL) as ctx:
            saved = ctx.run_full_scan()
            assert saved.id == 1
            assert ctx.get_latest_snapshot().id == 1
            assert [s.id for s in ctx.store.list_scans()] == [1]

        with _context(Mode.READ_ONLY) as ctx:
            assert ctx.run_full_scan().id == saved.id
