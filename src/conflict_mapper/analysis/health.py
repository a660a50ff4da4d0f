"""Per-plugin code health: performance footprint and security risk.

Both reports are derived from the ``CodeMetrics`` a source-reading registry
attaches to each plugin. Plugins without metrics get no report.

Performance factors, each scored 0..100 and rated against fixed thresholds:

    size        100 - 2 * megabytes             good/fair/poor above 5/10/20 MB
    complexity  100 - complexity / 100          2000/5000/10000
    database    100 - 5 * custom tables         2/5/10
    assets      100 - 3 * css and js files      5/10/20
    hooks       100 - registrations / 2         25/50/100

The overall score is the mean of the five factor scores.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..models import Plugin, ResourceKind, SecurityIssue, Severity

# factor -> (good, fair, poor) upper bounds
PERFORMANCE_THRESHOLDS = {
    "size": (5.0, 10.0, 20.0),
    "complexity": (2000.0, 5000.0, 10000.0),
    "database_impact": (2.0, 5.0, 10.0),
    "asset_impact": (5.0, 10.0, 20.0),
    "hooks": (25.0, 50.0, 100.0),
}

RISK_LEVELS = ("safe", "low", "medium", "high", "critical")


@dataclass(frozen=True)
class FactorScore:
    value: float
    rating: str
    score: float


@dataclass(frozen=True)
class PerformanceReport:
    plugin_id: str
    size: FactorScore
    complexity: FactorScore
    database_impact: FactorScore
    asset_impact: FactorScore
    hooks: FactorScore
    overall_score: float
    overall_rating: str

    def factors(self) -> dict[str, FactorScore]:
        return {
            "size": self.size,
            "complexity": self.complexity,
            "database_impact": self.database_impact,
            "asset_impact": self.asset_impact,
            "hooks": self.hooks,
        }


@dataclass(frozen=True)
class SecurityReport:
    plugin_id: str
    issues: tuple[SecurityIssue, ...]
    risk_level: str

    @property
    def total_issues(self) -> int:
        return len(self.issues)


def rate(factor: str, value: float) -> str:
    """Rating of a raw factor value: excellent, good, fair or poor."""
    good, fair, poor = PERFORMANCE_THRESHOLDS[factor]
    if value > poor:
        return "poor"
    if value > fair:
        return "fair"
    if value > good:
        return "good"
    return "excellent"


def overall_rating(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


def _factor(factor: str, value: float, score: float) -> FactorScore:
    return FactorScore(value=round(value, 2), rating=rate(factor, value), score=round(max(0.0, score), 2))


def analyze_performance(plugin: Plugin) -> Optional[PerformanceReport]:
    metrics = plugin.metrics
    if metrics is None:
        return None

    size_mb = plugin.size_bytes / (1024 * 1024)
    tables = sum(1 for r in plugin.declared_resources if r.kind is ResourceKind.TABLE)
    hooks = len(plugin.declared_hooks)

    size = _factor("size", size_mb, 100 - size_mb * 2)
    complexity = _factor("complexity", metrics.complexity, 100 - metrics.complexity / 100)
    database = _factor("database_impact", tables, 100 - tables * 5)
    assets = _factor("asset_impact", metrics.asset_count, 100 - metrics.asset_count * 3)
    hook_factor = _factor("hooks", hooks, 100 - hooks / 2)

    factors = (size, complexity, database, assets, hook_factor)
    overall = round(sum(f.score for f in factors) / len(factors), 2)
    return PerformanceReport(
        plugin_id=plugin.id,
        size=size,
        complexity=complexity,
        database_impact=database,
        asset_impact=assets,
        hooks=hook_factor,
        overall_score=overall,
        overall_rating=overall_rating(overall),
    )


def risk_level(issues: Sequence[SecurityIssue]) -> str:
    """Critical on any critical finding; high above two high findings."""
    if not issues:
        return "safe"
    high = sum(1 for i in issues if i.severity is Severity.HIGH)
    if any(i.severity is Severity.CRITICAL for i in issues):
        return "critical"
    if high > 2:
        return "high"
    if high > 0:
        return "medium"
    return "low"


def assess_security(plugin: Plugin) -> Optional[SecurityReport]:
    if plugin.metrics is None:
        return None
    issues = plugin.metrics.security_issues
    return SecurityReport(plugin_id=plugin.id, issues=issues, risk_level=risk_level(issues))
