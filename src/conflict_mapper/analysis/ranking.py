"""Ranking engine: one composite score and recommendation per plugin.

    score = clamp(base_quality
                  - conflict_weight * sum(severity weights of its conflicts)
                  - overlap_weight * max(redundancy of its clusters), 0, 100)

Base quality comes from a pluggable ``QualityStrategy``. ``HeuristicQuality``
is approximate: it only looks at size, modification age and whether a
version header was present. The default ``CodeHealthQuality`` averages that
heuristic with the performance and security reports when the plugin carries
source metrics.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol, Sequence

from ..config import MapperConfig, ScoringConfig
from ..logging_config import get_logger
from ..models import ConflictRecord, OverlapCluster, Plugin, RankedPlugin, Recommendation, Severity
from ..scanning.scanner import UNKNOWN_VERSION
from .health import analyze_performance, assess_security

logger = get_logger(__name__)

MAX_SCORE = 100.0
SECONDS_PER_DAY = 86400

SECURITY_SCORES = {"safe": 100.0, "low": 90.0, "medium": 70.0, "high": 40.0, "critical": 0.0}


class QualityStrategy(Protocol):
    def base_quality(self, plugin: Plugin) -> float:
        """Quality estimate in [0, 100] before conflict/overlap penalties."""
        ...


class ConstantQuality:
    """Every plugin starts from the same base score."""

    def __init__(self, value: float = MAX_SCORE):
        self.value = value

    def base_quality(self, plugin: Plugin) -> float:
        return self.value


class HeuristicQuality:
    """Size, staleness and missing-version penalties subtracted from 100."""

    def __init__(
        self,
        scoring: Optional[ScoringConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.scoring = scoring or ScoringConfig()
        self.clock = clock

    def base_quality(self, plugin: Plugin) -> float:
        s = self.scoring
        penalty = 0.0

        size_mb = plugin.size_bytes / (1024 * 1024)
        if size_mb > s.large_plugin_mb:
            penalty += min(s.max_size_penalty, (size_mb - s.large_plugin_mb) / 2)

        if plugin.last_modified > 0:
            age_days = (self.clock() - plugin.last_modified) / SECONDS_PER_DAY
            if age_days > s.stale_after_days:
                penalty += min(s.max_staleness_penalty, (age_days - s.stale_after_days) / 30)

        if plugin.version == UNKNOWN_VERSION:
            penalty += s.missing_version_penalty

        return _clamp(MAX_SCORE - penalty)


class CodeHealthQuality:
    """Mean of the heuristic, performance and security scores.

    Falls back to ``HeuristicQuality`` alone for plugins without metrics.
    """

    def __init__(
        self,
        scoring: Optional[ScoringConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.heuristic = HeuristicQuality(scoring, clock)

    def base_quality(self, plugin: Plugin) -> float:
        heuristic = self.heuristic.base_quality(plugin)
        performance = analyze_performance(plugin)
        security = assess_security(plugin)
        if performance is None or security is None:
            return heuristic
        return _clamp((heuristic + performance.overall_score + SECURITY_SCORES[security.risk_level]) / 3)


class RankingEngine:
    """Combine conflicts, overlaps and base quality into ranked recommendations."""

    def __init__(
        self,
        quality_strategy: Optional[QualityStrategy] = None,
        config: Optional[MapperConfig] = None,
    ):
        self.config = config or MapperConfig()
        self.scoring = self.config.scoring
        self.quality_strategy = quality_strategy or CodeHealthQuality(self.scoring)

    def severity_weight(self, severity: Severity) -> float:
        return {
            Severity.LOW: self.scoring.weight_low,
            Severity.MEDIUM: self.scoring.weight_medium,
            Severity.HIGH: self.scoring.weight_high,
            Severity.CRITICAL: self.scoring.weight_critical,
        }[severity]

    def recommend(self, score: float) -> Recommendation:
        if score >= self.scoring.keep_threshold:
            return Recommendation.KEEP
        if score >= self.scoring.review_threshold:
            return Recommendation.REVIEW
        return Recommendation.REPLACE

    def rank(
        self,
        plugins: Sequence[Plugin],
        conflicts: Sequence[ConflictRecord],
        overlaps: Sequence[OverlapCluster],
    ) -> list[RankedPlugin]:
        conflict_penalty: dict[str, float] = {}
        conflict_count: dict[str, int] = {}
        for conflict in conflicts:
            weight = self.severity_weight(conflict.severity)
            for pid in conflict.plugin_ids:
                conflict_penalty[pid] = conflict_penalty.get(pid, 0.0) + weight
                conflict_count[pid] = conflict_count.get(pid, 0) + 1

        redundancy: dict[str, float] = {}
        for cluster in overlaps:
            for pid in cluster.member_plugin_ids:
                redundancy[pid] = max(redundancy.get(pid, 0.0), cluster.redundancy_score)

        ranked = []
        for plugin in plugins:
            base = _clamp(float(self.quality_strategy.base_quality(plugin)))
            c_penalty = self.scoring.conflict_weight * conflict_penalty.get(plugin.id, 0.0)
            o_penalty = self.scoring.overlap_weight * redundancy.get(plugin.id, 0.0)
            score = round(_clamp(base - c_penalty - o_penalty), 2)
            ranked.append(
                RankedPlugin(
                    plugin_id=plugin.id,
                    name=plugin.name,
                    score=score,
                    recommendation=self.recommend(score),
                    contributing_factors={
                        "base_quality": round(base, 2),
                        "conflict_penalty": round(c_penalty, 2),
                        "overlap_penalty": round(o_penalty, 2),
                        "conflict_count": float(conflict_count.get(plugin.id, 0)),
                    },
                )
            )

        ranked.sort(key=lambda r: (-r.score, r.name, r.plugin_id))
        logger.info(f"Ranked {len(ranked)} plugins")
        return ranked


def comparative_ranking(ranked: Sequence[RankedPlugin]) -> list[dict[str, object]]:
    """Position and percentile of each plugin within an already sorted ranking."""
    total = len(ranked)
    return [
        {
            "plugin_id": r.plugin_id,
            "rank": index,
            "percentile": round((total - index + 1) / total * 100, 1),
            "total_plugins": total,
        }
        for index, r in enumerate(ranked, start=1)
    ]


def priority_actions(ranked: Sequence[RankedPlugin], threshold: float = 50.0) -> list[dict[str, object]]:
    """Plugins scoring below ``threshold`` that should be looked at first."""
    return [
        {
            "plugin_id": r.plugin_id,
            "name": r.name,
            "priority": "high",
            "action": "review",
            "reason": "Low compatibility score",
            "score": r.score,
        }
        for r in ranked
        if r.score < threshold
    ]


def _clamp(value: float, low: float = 0.0, high: float = MAX_SCORE) -> float:
    return max(low, min(high, value))
