"""
Scan result caching.

``DiskCache`` uses diskcache for SQLite-based persistent caching;
``MemoryCache`` keeps entries in-process (ephemeral contexts, tests).
Backend failures never propagate: they are logged and treated as a miss.
"""

import hashlib
import json
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol

from diskcache import Cache

from .exceptions import CacheError
from .logging_config import get_logger
from .models import Plugin

logger = get_logger(__name__)


class CacheStore(Protocol):
    """Key/value store with TTL. ``get`` returns None on a miss.

    ``ttl_seconds=None`` means the store default; a TTL of 0 or less means the
    entry is expired on arrival and is not kept.
    """

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


def _absorb(error: CacheError) -> None:
    logger.warning(f"{error} (treated as cache miss)")


class DiskCache:
    """
    SQLite-based cache backed by diskcache.

    Features:
    - TTL-based expiration
    - Thread-safe operations
    - Survives process restarts
    """

    def __init__(self, cache_dir: str | Path, ttl_seconds: int = 3600, enabled: bool = True):
        """
        Initialize cache.

        Args:
            cache_dir: Directory for cache storage
            ttl_seconds: Default time-to-live
            enabled: Whether caching is enabled
        """
        self.enabled = enabled
        self.ttl_seconds = ttl_seconds
        self.cache: Optional[Cache] = None

        if self.enabled:
            try:
                self.cache = Cache(str(cache_dir))
                logger.debug(f"Cache initialized at {cache_dir} with TTL={ttl_seconds}s")
            except Exception as e:
                _absorb(CacheError(f"Cache open failed: {e}", context={"cache_dir": str(cache_dir)}))
        else:
            logger.debug("Cache disabled")

    def get(self, key: str) -> Optional[Any]:
        if self.cache is None:
            return None
        try:
            value = self.cache.get(key)
        except Exception as e:
            _absorb(CacheError(f"Cache get failed: {e}", context={"key": key}))
            return None
        if value is not None:
            logger.debug(f"Cache hit: {key[:16]}...")
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        if self.cache is None:
            return
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            # Expired on arrival: drop any older value under the key.
            self.delete(key)
            return
        try:
            self.cache.set(key, value, expire=ttl)
            logger.debug(f"Cache set: {key[:16]}...")
        except Exception as e:
            _absorb(CacheError(f"Cache set failed: {e}", context={"key": key}))

    def delete(self, key: str) -> None:
        if self.cache is None:
            return
        try:
            self.cache.delete(key)
        except Exception as e:
            _absorb(CacheError(f"Cache delete failed: {e}", context={"key": key}))

    def clear(self) -> None:
        """Clear all cache entries."""
        if self.cache is None:
            return
        try:
            self.cache.clear()
            logger.info("Cache cleared")
        except Exception as e:
            _absorb(CacheError(f"Cache clear failed: {e}"))

    def stats(self) -> dict:
        if self.cache is None:
            return {"enabled": False}
        try:
            return {
                "enabled": True,
                "size": len(self.cache),
                "directory": self.cache.directory,
                "volume": self.cache.volume(),
            }
        except Exception as e:
            logger.warning(f"Cache stats failed: {e}")
            return {"enabled": True, "error": str(e)}

    def close(self) -> None:
        if self.cache is not None:
            self.cache.close()


class MemoryCache:
    """In-process TTL cache. ``clock`` is injectable for expiry tests."""

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
        logger.debug(f"Cache hit: {key[:16]}...")
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            if ttl <= 0:
                self._entries.pop(key, None)
                return
            self._entries[key] = (self.clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            return {"enabled": True, "size": len(self._entries), "directory": None}

    def close(self) -> None:
        pass


class NullCache:
    """Disabled cache: every lookup misses."""

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def clear(self) -> None:
        pass

    def stats(self) -> dict:
        return {"enabled": False}

    def close(self) -> None:
        pass


def fingerprint(plugins: Iterable[Plugin], scan_type: str = "full", config_hash: str = "") -> str:
    """
    Cache key for a plugin set.

    SHA-256 over the sorted ``(id, version, is_active)`` triples, the scan
    type tag and an optional configuration hash. Activating, deactivating or
    upgrading any plugin changes the key.
    """
    entries = sorted((p.id, p.version, p.is_active) for p in plugins)
    payload = json.dumps(
        {"plugins": entries, "scan_type": scan_type, "config": config_hash},
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def compute_config_hash(config: dict) -> str:
    """Short, stable hash of analysis settings for cache invalidation."""
    config_str = json.dumps(config, sort_keys=True, default=str)
    return hashlib.sha256(config_str.encode()).hexdigest()[:16]
