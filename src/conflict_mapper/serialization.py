"""JSON-safe (de)serialization of pipeline records.

Used for the ``full_data`` column of the history database, the cache payload
and ``--json`` CLI output. Sets are written as sorted lists so the encoded
form of a snapshot is stable.
"""

from __future__ import annotations

from typing import Any

from .models import (
    CodeMetrics,
    ConflictRecord,
    ConflictType,
    HookRegistration,
    OverlapCluster,
    Plugin,
    RankedPlugin,
    Recommendation,
    Resource,
    ResourceKind,
    ScanSnapshot,
    SecurityIssue,
    Severity,
)

FORMAT_VERSION = 1


def plugin_to_dict(plugin: Plugin) -> dict[str, Any]:
    return {
        "id": plugin.id,
        "name": plugin.name,
        "version": plugin.version,
        "file_path": plugin.file_path,
        "is_active": plugin.is_active,
        "declared_hooks": [
            {
                "hook_name": h.hook_name,
                "callback_identity": h.callback_identity,
                "priority": h.priority,
                "plugin_id": h.plugin_id,
            }
            for h in sorted(plugin.declared_hooks)
        ],
        "declared_capabilities": sorted(plugin.declared_capabilities),
        "declared_resources": [
            {"kind": r.kind.value, "name": r.name}
            for r in sorted(plugin.declared_resources, key=lambda r: (r.kind.value, r.name))
        ],
        "size_bytes": plugin.size_bytes,
        "last_modified": plugin.last_modified,
        "description": plugin.description,
        "author": plugin.author,
        "metrics": metrics_to_dict(plugin.metrics) if plugin.metrics is not None else None,
    }


def plugin_from_dict(data: dict[str, Any]) -> Plugin:
    return Plugin(
        id=data["id"],
        name=data["name"],
        version=data["version"],
        file_path=data["file_path"],
        is_active=bool(data["is_active"]),
        declared_hooks=frozenset(
            HookRegistration(
                hook_name=h["hook_name"],
                callback_identity=h.get("callback_identity", ""),
                priority=int(h["priority"]),
                plugin_id=h["plugin_id"],
            )
            for h in data.get("declared_hooks", [])
        ),
        declared_capabilities=frozenset(data.get("declared_capabilities", [])),
        declared_resources=frozenset(
            Resource(kind=ResourceKind(r["kind"]), name=r["name"])
            for r in data.get("declared_resources", [])
        ),
        size_bytes=int(data.get("size_bytes", 0)),
        last_modified=float(data.get("last_modified", 0.0)),
        description=data.get("description", ""),
        author=data.get("author", ""),
        metrics=metrics_from_dict(data["metrics"]) if data.get("metrics") is not None else None,
    )


def metrics_to_dict(metrics: CodeMetrics) -> dict[str, Any]:
    return {
        "source_lines": metrics.source_lines,
        "function_count": metrics.function_count,
        "class_count": metrics.class_count,
        "css_files": metrics.css_files,
        "js_files": metrics.js_files,
        "security_issues": [issue_to_dict(i) for i in metrics.security_issues],
    }


def metrics_from_dict(data: dict[str, Any]) -> CodeMetrics:
    return CodeMetrics(
        source_lines=int(data.get("source_lines", 0)),
        function_count=int(data.get("function_count", 0)),
        class_count=int(data.get("class_count", 0)),
        css_files=int(data.get("css_files", 0)),
        js_files=int(data.get("js_files", 0)),
        security_issues=tuple(
            SecurityIssue(
                type=i["type"],
                severity=Severity(i["severity"]),
                file=i.get("file", ""),
                line=int(i.get("line", 0)),
                message=i.get("message", ""),
                function=i.get("function", ""),
            )
            for i in data.get("security_issues", [])
        ),
    )


def issue_to_dict(issue: SecurityIssue) -> dict[str, Any]:
    return {
        "type": issue.type,
        "severity": issue.severity.value,
        "file": issue.file,
        "line": issue.line,
        "message": issue.message,
        "function": issue.function,
    }


def conflict_to_dict(conflict: ConflictRecord) -> dict[str, Any]:
    return {
        "type": conflict.type.value,
        "plugin_ids": sorted(conflict.plugin_ids),
        "hook_name": conflict.hook_name,
        "severity": conflict.severity.value,
        "description": conflict.description,
        "resolution": conflict.resolution,
    }


def conflict_from_dict(data: dict[str, Any]) -> ConflictRecord:
    return ConflictRecord(
        type=ConflictType(data["type"]),
        plugin_ids=frozenset(data["plugin_ids"]),
        hook_name=data.get("hook_name"),
        severity=Severity(data["severity"]),
        description=data["description"],
        resolution=data.get("resolution", ""),
    )


def overlap_to_dict(cluster: OverlapCluster) -> dict[str, Any]:
    return {
        "capability_tag": cluster.capability_tag,
        "member_plugin_ids": list(cluster.member_plugin_ids),
        "redundancy_score": cluster.redundancy_score,
        "advice": cluster.advice,
    }


def overlap_from_dict(data: dict[str, Any]) -> OverlapCluster:
    return OverlapCluster(
        capability_tag=data["capability_tag"],
        member_plugin_ids=tuple(data["member_plugin_ids"]),
        redundancy_score=float(data["redundancy_score"]),
        advice=data.get("advice", ""),
    )


def ranked_to_dict(ranked: RankedPlugin) -> dict[str, Any]:
    return {
        "plugin_id": ranked.plugin_id,
        "name": ranked.name,
        "score": ranked.score,
        "recommendation": ranked.recommendation.value,
        "contributing_factors": dict(ranked.contributing_factors),
    }


def ranked_from_dict(data: dict[str, Any]) -> RankedPlugin:
    return RankedPlugin(
        plugin_id=data["plugin_id"],
        name=data["name"],
        score=float(data["score"]),
        recommendation=Recommendation(data["recommendation"]),
        contributing_factors={k: float(v) for k, v in data["contributing_factors"].items()},
    )


def snapshot_to_dict(snapshot: ScanSnapshot) -> dict[str, Any]:
    return {
        "format_version": FORMAT_VERSION,
        "id": snapshot.id,
        "timestamp": snapshot.timestamp,
        "scan_type": snapshot.scan_type,
        "fingerprint": snapshot.fingerprint,
        "plugin_count": snapshot.plugin_count,
        "plugins": [plugin_to_dict(p) for p in snapshot.plugins],
        "conflicts": [conflict_to_dict(c) for c in snapshot.conflicts],
        "overlaps": [overlap_to_dict(o) for o in snapshot.overlaps],
        "ranked": [ranked_to_dict(r) for r in snapshot.ranked],
        "warnings": list(snapshot.warnings),
    }


def snapshot_from_dict(data: dict[str, Any]) -> ScanSnapshot:
    version = data.get("format_version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported snapshot format version: {version}")
    return ScanSnapshot(
        id=data.get("id"),
        timestamp=data["timestamp"],
        scan_type=data.get("scan_type", "full"),
        fingerprint=data.get("fingerprint", ""),
        plugins=tuple(plugin_from_dict(p) for p in data.get("plugins", [])),
        conflicts=tuple(conflict_from_dict(c) for c in data.get("conflicts", [])),
        overlaps=tuple(overlap_from_dict(o) for o in data.get("overlaps", [])),
        ranked=tuple(ranked_from_dict(r) for r in data.get("ranked", [])),
        warnings=tuple(data.get("warnings", [])),
    )
