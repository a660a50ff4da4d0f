"""Error taxonomy with stable diagnostic codes.

Error Code Convention:
    CM1xx - Scanning errors
    CM2xx - Configuration / dataset errors
    CM3xx - Persistence errors
    CM4xx - Cache errors
    CM5xx - Pipeline errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Structured error codes surfaced to orchestration layers."""

    # Scanning errors (CM1xx)
    CM100 = "CM100"  # Extension registry unreadable
    CM101 = "CM101"  # Malformed plugin metadata

    # Configuration errors (CM2xx)
    CM200 = "CM200"  # Invalid configuration
    CM201 = "CM201"  # Known-conflicts dataset invalid

    # Persistence errors (CM3xx)
    CM300 = "CM300"  # SQLite write/read failed
    CM301 = "CM301"  # Snapshot references unknown plugins

    # Cache errors (CM4xx)
    CM400 = "CM400"  # Cache backend failure

    # Pipeline errors (CM5xx)
    CM500 = "CM500"  # Scan exceeded timeout


@dataclass
class MapperError(Exception):
    """Base exception with structured context.

    Attributes:
        message: Human-readable error description
        code: Structured error code for categorization
        context: Additional context (plugin slug, path, ...)
        recoverable: Whether the pipeline can continue past this error
        recovery_hint: Suggested fix for the user
    """

    message: str
    code: ErrorCode = ErrorCode.CM200
    context: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = False
    recovery_hint: str | None = None

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(str(self))

    def to_json(self) -> dict[str, Any]:
        """Structured logging format."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
        }


@dataclass
class ScanError(MapperError):
    """The host extension registry could not be read (CM100)."""

    code: ErrorCode = ErrorCode.CM100
    recovery_hint: str | None = "Check that the plugins directory exists and is readable."


@dataclass
class MalformedPluginMetadata(MapperError):
    """A single plugin entry is unusable (CM101). Recovered by skipping it."""

    code: ErrorCode = ErrorCode.CM101
    recoverable: bool = True


@dataclass
class ConfigurationError(MapperError):
    """Invalid configuration value or config file (CM200)."""

    code: ErrorCode = ErrorCode.CM200


@dataclass
class KnownConflictsError(ConfigurationError):
    """The known-conflicts dataset failed to load (CM201)."""

    code: ErrorCode = ErrorCode.CM201


@dataclass
class PersistenceError(MapperError):
    """Snapshot storage failed; the attempted write was rolled back (CM300)."""

    code: ErrorCode = ErrorCode.CM300


@dataclass
class SnapshotIntegrityError(PersistenceError):
    """Snapshot references plugin ids missing from its plugin set (CM301)."""

    code: ErrorCode = ErrorCode.CM301


@dataclass
class CacheError(MapperError):
    """Cache backend failure (CM400). Never fatal: callers treat it as a miss."""

    code: ErrorCode = ErrorCode.CM400
    recoverable: bool = True


@dataclass
class ScanTimeoutError(MapperError):
    """The full scan exceeded ``scan_timeout_seconds`` (CM500)."""

    code: ErrorCode = ErrorCode.CM500
