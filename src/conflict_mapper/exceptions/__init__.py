"""Exception hierarchy for Plugin Conflict Mapper."""

from .taxonomy import (
    CacheError,
    ConfigurationError,
    ErrorCode,
    KnownConflictsError,
    MalformedPluginMetadata,
    MapperError,
    PersistenceError,
    ScanError,
    ScanTimeoutError,
    SnapshotIntegrityError,
)

__all__ = [
    "MapperError",
    "ErrorCode",
    "ScanError",
    "MalformedPluginMetadata",
    "ConfigurationError",
    "KnownConflictsError",
    "PersistenceError",
    "SnapshotIntegrityError",
    "CacheError",
    "ScanTimeoutError",
]
