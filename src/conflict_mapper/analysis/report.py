"""Derived views of a snapshot for JSON output.

``snapshot_report`` extends the stored snapshot dict with figures computed
on read: conflict summary, comparative ranking, priority actions, curated
alternatives for overlapping categories, plugin pairs with similar hook
footprints, and per-plugin code health.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Sequence

from ..models import Plugin, ScanSnapshot
from ..serialization import issue_to_dict, snapshot_to_dict
from .conflicts import summarize
from .health import analyze_performance, assess_security
from .overlap import category_alternatives, similar_hook_footprints
from .ranking import comparative_ranking, priority_actions


def overlap_alternatives(snapshot: ScanSnapshot) -> dict[str, dict[str, str]]:
    """Curated alternatives per overlapping capability that has any."""
    alternatives = {}
    for cluster in snapshot.overlaps:
        options = category_alternatives(cluster.capability_tag)
        if options:
            alternatives[cluster.capability_tag] = options
    return alternatives


def health_report(plugins: Sequence[Plugin]) -> dict[str, dict[str, Any]]:
    """Performance and security reports keyed by plugin id.

    Plugins read without source metrics are left out.
    """
    reports: dict[str, dict[str, Any]] = {}
    for plugin in plugins:
        performance = analyze_performance(plugin)
        security = assess_security(plugin)
        if performance is None or security is None:
            continue
        reports[plugin.id] = {
            "performance": {
                "factors": {name: asdict(f) for name, f in performance.factors().items()},
                "overall_score": performance.overall_score,
                "overall_rating": performance.overall_rating,
            },
            "security": {
                "risk_level": security.risk_level,
                "total_issues": security.total_issues,
                "issues": [issue_to_dict(i) for i in security.issues],
            },
        }
    return reports


def snapshot_report(snapshot: ScanSnapshot) -> dict[str, Any]:
    payload = snapshot_to_dict(snapshot)
    payload["summary"] = summarize(snapshot.conflicts)
    payload["comparative_ranking"] = comparative_ranking(snapshot.ranked)
    payload["priority_actions"] = priority_actions(snapshot.ranked)
    payload["alternatives"] = overlap_alternatives(snapshot)
    payload["hook_footprints"] = [asdict(m) for m in similar_hook_footprints(snapshot.plugins)]
    payload["health"] = health_report(snapshot.plugins)
    return payload
