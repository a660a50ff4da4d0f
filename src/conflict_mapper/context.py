"""Application context: the explicitly constructed scan pipeline.

There is no module-level instance. Callers build one with
``create_context`` and pass it where it is needed::

    with create_context(load_config()) as ctx:
        snapshot = ctx.run_full_scan()
"""

from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .analysis.conflicts import ConflictDetector
from .analysis.overlap import OverlapAnalyzer
from .analysis.ranking import QualityStrategy, RankingEngine
from .cache import CacheStore, DiskCache, MemoryCache, NullCache, compute_config_hash, fingerprint
from .config import MapperConfig
from .events import (
    SCAN_CACHE_HIT,
    SCAN_COMPLETED,
    SCAN_FAILED,
    SCAN_STARTED,
    SNAPSHOT_SAVED,
    EventBus,
)
from .exceptions import MapperError, ScanTimeoutError
from .knowledge import CompatibilityTable
from .logging_config import get_logger
from .models import ScanResult, ScanSnapshot
from .persistence.database import IN_MEMORY
from .persistence.store import SnapshotStore
from .persistence.writer import validate_snapshot
from .registry.base import ExtensionRegistry
from .registry.directory import DirectoryRegistry
from .scanning.scanner import PluginScanner
from .serialization import snapshot_from_dict, snapshot_to_dict

logger = get_logger(__name__)

ProgressCallback = Optional[Callable[[str], None]]


class Mode(Enum):
    FULL = "full"
    READ_ONLY = "read_only"  # never writes snapshots
    EPHEMERAL = "ephemeral"  # memory cache, in-memory database


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """Holds every pipeline component for one configuration and mode."""

    config: MapperConfig
    mode: Mode
    registry: ExtensionRegistry
    scanner: PluginScanner
    detector: ConflictDetector
    analyzer: OverlapAnalyzer
    ranking: RankingEngine
    cache: CacheStore
    store: SnapshotStore
    events: EventBus
    known_conflicts: CompatibilityTable
    clock: Callable[[], datetime] = utc_now
    config_hash: str = field(default="")

    def __post_init__(self) -> None:
        if not self.config_hash:
            self.config_hash = compute_config_hash(
                {
                    "late_priority": self.config.late_priority,
                    "finalizer_callbacks": sorted(self.config.finalizer_callbacks),
                    "include_inactive": self.config.include_inactive,
                    "scoring": asdict(self.config.scoring),
                    "known_conflicts": [self.known_conflicts.version, len(self.known_conflicts)],
                }
            )

    # ── lifecycle ─────────────────────────────────────────────────

    def close(self) -> None:
        self.store.close()
        close = getattr(self.cache, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── operations ────────────────────────────────────────────────

    def run_full_scan(self, force: bool = False, on_progress: ProgressCallback = None) -> ScanSnapshot:
        """Scan, analyze, persist and cache; or return the cached snapshot.

        A cached snapshot is reused when the plugin-set fingerprint is
        unchanged and ``force`` is False. A scan that times out leaves
        neither a history row nor a cache entry behind.

        Raises
        ------
        ScanError
            The registry could not be read.
        PersistenceError
            The snapshot could not be saved.
        ScanTimeoutError
            The pipeline exceeded ``scan_timeout_seconds``.
        """
        self.events.emit(SCAN_STARTED, {"mode": self.mode.value, "force": force})
        gate = _CommitGate()
        try:
            snapshot = self._with_timeout(lambda: self._run(force, on_progress, gate), gate)
        except MapperError as e:
            logger.error(str(e))
            self.events.emit(SCAN_FAILED, {"error": e.to_json()})
            raise
        return snapshot

    def get_latest_snapshot(self) -> Optional[ScanSnapshot]:
        return self.store.latest_scan()

    def analyze(self, scan_result: ScanResult, snapshot_fingerprint: str = "") -> ScanSnapshot:
        """Run detection and overlap analysis concurrently, then rank."""
        plugins = scan_result.plugins

        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            conflicts_future = executor.submit(self.detector.detect, plugins)
            overlaps_future = executor.submit(self.analyzer.analyze, plugins)
            conflicts = conflicts_future.result()
            overlaps = overlaps_future.result()

        ranked = self.ranking.rank(plugins, conflicts, overlaps)

        snapshot = ScanSnapshot(
            timestamp=self.clock().astimezone(timezone.utc).isoformat(timespec="seconds"),
            plugins=plugins,
            conflicts=tuple(conflicts),
            overlaps=tuple(overlaps),
            ranked=tuple(ranked),
            warnings=scan_result.warnings,
            fingerprint=snapshot_fingerprint,
            scan_type=self.config.scan_type,
        )
        validate_snapshot(snapshot)
        return snapshot

    # ── internals ─────────────────────────────────────────────────

    def _run(self, force: bool, on_progress: ProgressCallback, gate: _CommitGate) -> ScanSnapshot:
        def _progress(msg: str) -> None:
            if on_progress is not None:
                on_progress(msg)

        _progress("Scanning plugins...")
        scan_result = self.scanner.scan()
        key = fingerprint(scan_result.plugins, self.config.scan_type, self.config_hash)

        if not force:
            cached = self._cached_snapshot(key)
            if cached is not None:
                logger.info(f"Cache hit for fingerprint {key[:12]}")
                self.events.emit(SCAN_CACHE_HIT, {"fingerprint": key, "scan_id": cached.id})
                self.events.emit(SCAN_COMPLETED, {"scan_id": cached.id, "cached": True})
                return cached

        _progress(f"Analyzing {len(scan_result.plugins)} plugins...")
        snapshot = self.analyze(scan_result, key)

        with gate:
            if self.mode is not Mode.READ_ONLY:
                _progress("Saving snapshot...")
                scan_id = self.store.save_scan(snapshot)
                snapshot = replace(snapshot, id=scan_id)
                self.events.emit(SNAPSHOT_SAVED, {"scan_id": scan_id, "fingerprint": key})
                # Only saved snapshots are cached.
                self.cache.set(key, snapshot_to_dict(snapshot), self.config.cache_ttl_seconds)

        self.events.emit(SCAN_COMPLETED, {"scan_id": snapshot.id, "cached": False})
        return snapshot

    def _cached_snapshot(self, key: str) -> Optional[ScanSnapshot]:
        payload = self.cache.get(key)
        if payload is None:
            return None
        try:
            snapshot = snapshot_from_dict(payload)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key[:12]}: {e}")
            self.cache.delete(key)
            return None
        if snapshot.id is None and self.mode is not Mode.READ_ONLY:
            logger.debug(f"Ignoring unsaved cache entry {key[:12]}")
            return None
        return snapshot

    def _with_timeout(self, func: Callable[[], Any], gate: _CommitGate) -> Any:
        timeout = self.config.scan_timeout_seconds
        if not timeout:
            return func()
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = executor.submit(func)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            if not gate.cancel():
                # The worker committed first; its result stands.
                return future.result()
            raise ScanTimeoutError(
                f"Scan exceeded {timeout}s timeout",
                context={"timeout_seconds": timeout},
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


class _CommitGate:
    """Decides, once, whether a timed scan commits or is abandoned.

    The worker enters the gate around its writes; the waiting caller calls
    ``cancel`` on timeout. Whichever takes the lock first wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._committed = False

    def cancel(self) -> bool:
        """Abandon the scan unless it already committed. True if abandoned."""
        with self._lock:
            if self._committed:
                return False
            self._cancelled = True
            return True

    def __enter__(self) -> "_CommitGate":
        self._lock.acquire()
        if self._cancelled:
            self._lock.release()
            raise ScanTimeoutError("Scan abandoned after timeout; results discarded")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self._committed = True
        self._lock.release()


def create_context(
    config: Optional[MapperConfig] = None,
    mode: Mode = Mode.FULL,
    registry: Optional[ExtensionRegistry] = None,
    quality_strategy: Optional[QualityStrategy] = None,
    events: Optional[EventBus] = None,
    cache: Optional[CacheStore] = None,
    known_conflicts: Optional[CompatibilityTable] = None,
    clock: Callable[[], datetime] = utc_now,
) -> AppContext:
    """Compose a pipeline for ``config`` in the given mode.

    Raises
    ------
    KnownConflictsError
        The configured (or bundled) known-conflicts dataset is invalid.
    PersistenceError
        The history database cannot be opened.
    """
    config = config or MapperConfig()

    if registry is None:
        registry = DirectoryRegistry(
            config.plugins_dir, max_files_per_plugin=config.max_files_per_plugin
        )
    if known_conflicts is None:
        known_conflicts = CompatibilityTable.load(config.known_conflicts_file)

    if cache is None:
        cache = _build_cache(config, mode)

    store = SnapshotStore(_db_target(config, mode)).open()

    ctx = AppContext(
        config=config,
        mode=mode,
        registry=registry,
        scanner=PluginScanner(registry, config),
        detector=ConflictDetector(known_conflicts, config),
        analyzer=OverlapAnalyzer(config),
        ranking=RankingEngine(quality_strategy, config),
        cache=cache,
        store=store,
        events=events or EventBus(),
        known_conflicts=known_conflicts,
        clock=clock,
    )
    logger.debug(f"Context created in {mode.value} mode")
    return ctx


def _build_cache(config: MapperConfig, mode: Mode) -> CacheStore:
    if not config.cache_enabled:
        return NullCache()
    if mode is Mode.EPHEMERAL or config.cache_backend == "memory":
        return MemoryCache(ttl_seconds=config.cache_ttl_seconds)
    return DiskCache(config.cache_dir, ttl_seconds=config.cache_ttl_seconds)


def _db_target(config: MapperConfig, mode: Mode) -> str | Path:
    if mode is Mode.EPHEMERAL:
        return IN_MEMORY
    # A read-only context never creates a history database.
    if mode is Mode.READ_ONLY and not Path(config.db_path).exists():
        return IN_MEMORY
    return config.db_path
