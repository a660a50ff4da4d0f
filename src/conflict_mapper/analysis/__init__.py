"""Conflict detection, overlap analysis, code health and ranking."""

from .conflicts import ConflictDetector, conflict_sort_key, summarize
from .health import PerformanceReport, SecurityReport, analyze_performance, assess_security, risk_level
from .overlap import OverlapAnalyzer, category_alternatives, mean_pairwise_jaccard, similar_hook_footprints
from .ranking import (
    CodeHealthQuality,
    ConstantQuality,
    HeuristicQuality,
    QualityStrategy,
    RankingEngine,
    comparative_ranking,
    priority_actions,
)
from .report import health_report, snapshot_report

__all__ = [
    "ConflictDetector",
    "conflict_sort_key",
    "summarize",
    "OverlapAnalyzer",
    "category_alternatives",
    "mean_pairwise_jaccard",
    "similar_hook_footprints",
    "PerformanceReport",
    "SecurityReport",
    "analyze_performance",
    "assess_security",
    "risk_level",
    "RankingEngine",
    "QualityStrategy",
    "HeuristicQuality",
    "CodeHealthQuality",
    "ConstantQuality",
    "comparative_ranking",
    "priority_actions",
    "health_report",
    "snapshot_report",
]
