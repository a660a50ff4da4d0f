"""Core records flowing through the scan pipeline.

Every record is a frozen dataclass: a ``Plugin`` tuple produced by the
scanner is shared read-only between the conflict detector and the overlap
analyzer, and nothing downstream mutates what it receives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ConflictType(Enum):
    HOOK_PRIORITY_COLLISION = "HookPriorityCollision"
    MUTUAL_EXCLUSION = "MutualExclusion"
    KNOWN_INCOMPATIBLE = "KnownIncompatible"


class Severity(Enum):
    """Ordinal conflict impact level."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Accept either the enum value ("High") or a lowercase name ("high")."""
        for member in cls:
            if value == member.value or value.upper() == member.name:
                return member
        raise ValueError(f"Unknown severity: {value!r}")


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class Recommendation(Enum):
    KEEP = "Keep"
    REVIEW = "Review"
    REPLACE = "Replace"


class ResourceKind(Enum):
    FUNCTION = "function"
    GLOBAL = "global"
    TABLE = "table"


@dataclass(frozen=True, order=True)
class HookRegistration:
    """A callback registered on a named hook at a given priority."""

    hook_name: str
    priority: int
    plugin_id: str
    callback_identity: str = ""


@dataclass(frozen=True)
class Resource:
    """A global symbol (function, global variable, table) a plugin claims."""

    kind: ResourceKind
    name: str


@dataclass(frozen=True)
class SecurityIssue:
    """One suspicious source location found by the security scan."""

    type: str  # dangerous_function, sql_injection, xss, file_operation
    severity: Severity
    file: str
    line: int
    message: str
    function: str = ""


@dataclass(frozen=True)
class CodeMetrics:
    """Source measurements of one plugin, taken while reading its files.

    ``source_lines`` counts newlines across the scanned source files;
    ``function_count`` and ``class_count`` count every ``function`` /
    ``class`` keyword, methods included.
    """

    source_lines: int = 0
    function_count: int = 0
    class_count: int = 0
    css_files: int = 0
    js_files: int = 0
    security_issues: tuple[SecurityIssue, ...] = ()

    @property
    def complexity(self) -> int:
        return self.source_lines + self.function_count * 10 + self.class_count * 20

    @property
    def asset_count(self) -> int:
        return self.css_files + self.js_files


@dataclass(frozen=True)
class Plugin:
    """Immutable per-scan snapshot of one installed plugin.

    Identity is the normalized slug in ``id``.
    """

    id: str
    name: str
    version: str
    file_path: str
    is_active: bool
    declared_hooks: frozenset[HookRegistration] = frozenset()
    declared_capabilities: frozenset[str] = frozenset()
    size_bytes: int = 0
    last_modified: float = 0.0
    description: str = ""
    author: str = ""
    declared_resources: frozenset[Resource] = frozenset()
    metrics: Optional[CodeMetrics] = None  # None when the registry has no source access


@dataclass(frozen=True)
class ConflictRecord:
    type: ConflictType
    plugin_ids: frozenset[str]
    severity: Severity
    description: str
    hook_name: Optional[str] = None
    resolution: str = ""

    @property
    def identity(self) -> tuple[ConflictType, frozenset[str], Optional[str]]:
        """Deduplication key."""
        return (self.type, self.plugin_ids, self.hook_name)


@dataclass(frozen=True)
class OverlapCluster:
    capability_tag: str
    member_plugin_ids: tuple[str, ...]
    redundancy_score: float
    advice: str = ""


@dataclass(frozen=True)
class RankedPlugin:
    plugin_id: str
    name: str
    score: float
    recommendation: Recommendation
    contributing_factors: dict[str, float] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class RawExtensionMetadata:
    """Untrusted registry output for one installed extension.

    ``headers`` holds the plugin header fields as read ("Plugin Name",
    "Version", ...). ``hooks`` entries are mappings with ``hook``,
    ``callback`` and ``priority`` keys; priority may still be a string.
    ``metrics`` is an optional mapping with the ``CodeMetrics`` field names,
    where ``security_issues`` is a list of mappings.
    """

    slug: str
    file_path: str
    headers: Any = field(default_factory=dict, hash=False)
    hooks: tuple[Any, ...] = ()
    functions: tuple[str, ...] = ()
    globals: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    size_bytes: int = 0
    last_modified: float = 0.0
    is_active: Optional[bool] = None
    read_errors: tuple[str, ...] = ()
    metrics: Any = field(default=None, hash=False)


@dataclass(frozen=True)
class ScanResult:
    plugins: tuple[Plugin, ...]
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScanSnapshot:
    """Immutable, timestamped result of one full pipeline run.

    ``id`` is assigned by the snapshot store; unsaved snapshots carry None.
    """

    timestamp: str
    plugins: tuple[Plugin, ...]
    conflicts: tuple[ConflictRecord, ...]
    overlaps: tuple[OverlapCluster, ...]
    ranked: tuple[RankedPlugin, ...]
    warnings: tuple[str, ...] = ()
    fingerprint: str = ""
    scan_type: str = "full"
    id: Optional[int] = None

    @property
    def plugin_count(self) -> int:
        return len(self.plugins)

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    @property
    def overlap_count(self) -> int:
        return len(self.overlaps)


@dataclass(frozen=True)
class ScanSummary:
    """One row of ``list_scans``: counts without the full payload."""

    id: int
    timestamp: str
    plugin_count: int
    conflict_count: int
    overlap_count: int
    scan_type: str
    fingerprint: str


def referenced_plugin_ids(snapshot: ScanSnapshot) -> set[str]:
    """Every plugin id mentioned by conflicts, overlaps and rankings."""
    ids: set[str] = set()
    for conflict in snapshot.conflicts:
        ids.update(conflict.plugin_ids)
    for cluster in snapshot.overlaps:
        ids.update(cluster.member_plugin_ids)
    ids.update(r.plugin_id for r in snapshot.ranked)
    return ids
