"""Conflict detection over an immutable plugin set.

All hook checks are sort-and-group passes over the flattened hook
registrations, so detection is O(H log H) in the number of registrations
rather than pairwise over plugins.
"""

from __future__ import annotations

from collections import Counter
from itertools import groupby
from typing import Iterable, Optional, Sequence

from ..config import MapperConfig
from ..knowledge import CompatibilityTable
from ..logging_config import get_logger
from ..models import (
    ConflictRecord,
    ConflictType,
    HookRegistration,
    Plugin,
    ResourceKind,
    Severity,
)

logger = get_logger(__name__)

# Host symbols every plugin may legitimately touch.
CORE_GLOBALS = frozenset(
    {
        "wpdb",
        "wp_query",
        "wp_rewrite",
        "wp",
        "post",
        "wp_the_query",
        "wp_version",
        "wp_db_version",
        "tinymce_version",
        "required_php_version",
        "required_mysql_version",
        "wp_local_package",
    }
)
CORE_FUNCTION_PREFIXES = ("wp_", "get_", "add_", "remove_", "do_", "apply_", "is_", "has_")
CORE_TABLES = frozenset(
    {
        "posts",
        "postmeta",
        "options",
        "users",
        "usermeta",
        "terms",
        "termmeta",
        "term_taxonomy",
        "term_relationships",
        "comments",
        "commentmeta",
        "links",
    }
)

_RESOURCE_SEVERITY = {
    ResourceKind.FUNCTION: Severity.HIGH,
    ResourceKind.TABLE: Severity.HIGH,
    ResourceKind.GLOBAL: Severity.MEDIUM,
}


def conflict_sort_key(record: ConflictRecord) -> tuple:
    """Severity descending, then hook name, type and plugin ids ascending."""
    return (
        -record.severity.rank,
        record.hook_name or "",
        record.type.value,
        tuple(sorted(record.plugin_ids)),
    )


def is_core_resource(kind: ResourceKind, name: str) -> bool:
    if kind is ResourceKind.GLOBAL:
        return name in CORE_GLOBALS
    if kind is ResourceKind.FUNCTION:
        return name.startswith(CORE_FUNCTION_PREFIXES)
    return name in CORE_TABLES


class ConflictDetector:
    """Finds hook collisions, ordering clashes, shared symbols and known pairs.

    Args:
        known_conflicts: Compatibility table for known-incompatible pairs
            (None disables that check)
        config: Supplies ``late_priority``, ``finalizer_callbacks`` and
            ``include_inactive``
    """

    def __init__(
        self,
        known_conflicts: Optional[CompatibilityTable] = None,
        config: Optional[MapperConfig] = None,
    ):
        self.known_conflicts = known_conflicts or CompatibilityTable.empty()
        self.config = config or MapperConfig()
        self._finalizers = frozenset(self.config.finalizer_callbacks)

    def detect(self, plugins: Sequence[Plugin]) -> list[ConflictRecord]:
        considered = [p for p in plugins if p.is_active or self.config.include_inactive]

        records: list[ConflictRecord] = []
        records.extend(self._hook_conflicts(considered))
        records.extend(self._resource_conflicts(considered))
        records.extend(self._known_conflicts(considered))

        unique: dict[tuple, ConflictRecord] = {}
        for record in records:
            unique.setdefault(record.identity, record)

        result = sorted(unique.values(), key=conflict_sort_key)
        logger.info(f"Detected {len(result)} conflicts across {len(considered)} plugins")
        return result

    # ── Hooks ─────────────────────────────────────────────────

    def _is_terminal(self, registration: HookRegistration) -> bool:
        return (
            registration.priority >= self.config.late_priority
            or registration.callback_identity in self._finalizers
        )

    def _hook_conflicts(self, plugins: Iterable[Plugin]) -> list[ConflictRecord]:
        registrations = sorted(h for p in plugins for h in p.declared_hooks)
        records: list[ConflictRecord] = []

        for hook_name, hook_group in groupby(registrations, key=lambda h: h.hook_name):
            hook_regs = list(hook_group)

            collisions: list[ConflictRecord] = []
            for priority, same_slot in groupby(hook_regs, key=lambda h: h.priority):
                owners = frozenset(h.plugin_id for h in same_slot)
                if len(owners) < 2:
                    continue
                collisions.append(
                    ConflictRecord(
                        type=ConflictType.HOOK_PRIORITY_COLLISION,
                        plugin_ids=owners,
                        hook_name=hook_name,
                        severity=Severity.MEDIUM,
                        description=(
                            f"{_join(owners)} register on '{hook_name}' at priority "
                            f"{priority}; their execution order is undefined"
                        ),
                        resolution="Move one callback to a different priority.",
                    )
                )

            tail = self._terminal_tail(hook_regs)
            if tail is not None:
                tail_owners = frozenset(h.plugin_id for h in tail)
                records.append(
                    ConflictRecord(
                        type=ConflictType.MUTUAL_EXCLUSION,
                        plugin_ids=tail_owners,
                        hook_name=hook_name,
                        severity=Severity.HIGH,
                        description=(
                            f"{_join(tail_owners)} all claim the last slot on '{hook_name}' "
                            f"(priority >= {tail[0].priority}); only one can run last"
                        ),
                        resolution="Keep a single plugin that finalizes this hook.",
                    )
                )
                collisions = [c for c in collisions if not c.plugin_ids <= tail_owners]

            records.extend(collisions)

        return records

    def _terminal_tail(self, hook_regs: list[HookRegistration]) -> Optional[list[HookRegistration]]:
        """Registrations at or after the earliest terminal one, if >= 2 plugins claim them.

        ``hook_regs`` is sorted by priority.
        """
        first = next((h for h in hook_regs if self._is_terminal(h)), None)
        if first is None:
            return None
        tail = [h for h in hook_regs if h.priority >= first.priority]
        if len({h.plugin_id for h in tail}) < 2:
            return None
        return tail

    # ── Shared symbols ────────────────────────────────────────

    def _resource_conflicts(self, plugins: Iterable[Plugin]) -> list[ConflictRecord]:
        claims = sorted(
            (r.kind.value, r.name, p.id)
            for p in plugins
            for r in p.declared_resources
            if not is_core_resource(r.kind, r.name)
        )

        # plugin set -> [(kind, name)]
        shared: dict[frozenset[str], list[tuple[ResourceKind, str]]] = {}
        for (kind_value, name), group in groupby(claims, key=lambda c: (c[0], c[1])):
            owners = frozenset(c[2] for c in group)
            if len(owners) >= 2:
                shared.setdefault(owners, []).append((ResourceKind(kind_value), name))

        records = []
        for owners, symbols in shared.items():
            severity = max((_RESOURCE_SEVERITY[kind] for kind, _ in symbols), key=lambda s: s.rank)
            listed = ", ".join(f"{kind.value} {name}" for kind, name in symbols)
            records.append(
                ConflictRecord(
                    type=ConflictType.MUTUAL_EXCLUSION,
                    plugin_ids=owners,
                    severity=severity,
                    description=f"{_join(owners)} claim the same global symbols: {listed}",
                    resolution="Deactivate one of the plugins; both cannot own these symbols.",
                )
            )
        return records

    # ── Known pairs ───────────────────────────────────────────

    def _known_conflicts(self, plugins: Sequence[Plugin]) -> list[ConflictRecord]:
        return [
            ConflictRecord(
                type=ConflictType.KNOWN_INCOMPATIBLE,
                plugin_ids=entry.pair,
                severity=Severity.CRITICAL,
                description=entry.description,
                resolution=entry.resolution,
            )
            for entry in self.known_conflicts.matches(plugins)
        ]


def summarize(conflicts: Iterable[ConflictRecord]) -> dict[str, object]:
    """Totals by severity and by type."""
    conflicts = list(conflicts)
    by_severity = Counter(c.severity for c in conflicts)
    by_type = Counter(c.type for c in conflicts)
    return {
        "total": len(conflicts),
        "by_severity": {s.value: by_severity.get(s, 0) for s in Severity},
        "by_type": {t.value: by_type.get(t, 0) for t in ConflictType},
        "high_or_critical": by_severity.get(Severity.HIGH, 0) + by_severity.get(Severity.CRITICAL, 0),
    }


def _join(plugin_ids: Iterable[str]) -> str:
    return ", ".join(sorted(plugin_ids))
