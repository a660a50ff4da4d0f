"""Overlap analysis: clusters of plugins offering the same capability."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sklearn.metrics import pairwise_distances

from ..config import MapperConfig
from ..logging_config import get_logger
from ..models import OverlapCluster, Plugin

logger = get_logger(__name__)

CATEGORY_ADVICE = {
    "caching": (
        "You have {count} caching plugins active. This can cause conflicts and reduce "
        "performance. Keep only one caching plugin."
    ),
    "security": (
        "Multiple security plugins ({count}) may conflict. "
        "Choose one comprehensive security solution."
    ),
    "seo": (
        "{count} SEO plugins detected. Multiple SEO plugins can create duplicate meta tags. "
        "Use only one SEO plugin."
    ),
    "backup": (
        "{count} backup plugins found. Multiple backup solutions waste resources. "
        "Choose one reliable backup plugin."
    ),
    "forms": (
        "{count} form plugins active. Consider consolidating to one form solution "
        "to reduce overhead."
    ),
    "social": (
        "You have {count} social sharing plugins. These often have overlapping "
        "features - one should be sufficient."
    ),
    "spam": "{count} anti-spam plugins detected. One good anti-spam solution is usually enough.",
}
DEFAULT_ADVICE = "You have {count} plugins in the {tag} category. Review if all are necessary."

CATEGORY_ALTERNATIVES = {
    "seo": {
        "Yoast SEO": "Comprehensive SEO solution with excellent documentation",
        "Rank Math": "Feature-rich SEO plugin with built-in advanced features",
        "The SEO Framework": "Lightweight and fast SEO plugin",
    },
    "caching": {
        "WP Rocket": "Premium caching solution with excellent support",
        "W3 Total Cache": "Free, comprehensive caching plugin",
        "WP Super Cache": "Simple and reliable caching solution",
    },
    "security": {
        "Wordfence Security": "Comprehensive security with firewall and malware scanner",
        "Sucuri Security": "Security auditing, malware scanning, and hardening",
        "iThemes Security": "Easy-to-use security hardening plugin",
    },
    "backup": {
        "UpdraftPlus": "Popular backup and restoration plugin",
        "BackWPup": "Complete backup solution with multiple destinations",
        "Duplicator": "Backup and migration tool",
    },
    "forms": {
        "WPForms": "User-friendly drag-and-drop form builder",
        "Gravity Forms": "Powerful forms with advanced features",
        "Contact Form 7": "Simple and flexible contact form",
    },
}


def category_advice(tag: str, count: int) -> str:
    return CATEGORY_ADVICE.get(tag, DEFAULT_ADVICE).format(count=count, tag=tag)


def category_alternatives(tag: str) -> dict[str, str]:
    """Well-known single-plugin choices for a capability, if curated."""
    return dict(CATEGORY_ALTERNATIVES.get(tag, {}))


def mean_pairwise_jaccard(tag_sets: Sequence[frozenset[str]]) -> float:
    """Average Jaccard similarity over all member pairs.

    1.0 when every member carries the same tag set; lower as the sets
    diverge. Fewer than two sets give 0.0.
    """
    if len(tag_sets) < 2:
        return 0.0
    vocabulary = sorted(set().union(*tag_sets))
    index = {tag: i for i, tag in enumerate(vocabulary)}
    matrix = np.zeros((len(tag_sets), len(vocabulary)), dtype=bool)
    for row, tags in enumerate(tag_sets):
        for tag in tags:
            matrix[row, index[tag]] = True

    similarity = 1.0 - pairwise_distances(matrix, metric="jaccard")
    upper = similarity[np.triu_indices(len(tag_sets), k=1)]
    return float(np.clip(upper.mean(), 0.0, 1.0))


@dataclass(frozen=True)
class HookFootprintMatch:
    """Two plugins hooking largely the same extension points."""

    plugin_a: str
    plugin_b: str
    common_hooks: int
    similarity: float


class OverlapAnalyzer:
    """Group plugins by capability tag and score each group's redundancy."""

    def __init__(self, config: Optional[MapperConfig] = None):
        self.config = config or MapperConfig()

    def analyze(self, plugins: Sequence[Plugin]) -> list[OverlapCluster]:
        considered = [p for p in plugins if p.is_active or self.config.include_inactive]

        members_by_tag: dict[str, list[Plugin]] = {}
        for plugin in considered:
            for tag in plugin.declared_capabilities:
                members_by_tag.setdefault(tag, []).append(plugin)

        clusters = []
        for tag, members in members_by_tag.items():
            if len(members) < 2:
                continue
            members = sorted(members, key=lambda p: p.id)
            score = mean_pairwise_jaccard([p.declared_capabilities for p in members])
            clusters.append(
                OverlapCluster(
                    capability_tag=tag,
                    member_plugin_ids=tuple(p.id for p in members),
                    redundancy_score=round(score, 6),
                    advice=category_advice(tag, len(members)),
                )
            )

        clusters.sort(key=lambda c: (-c.redundancy_score, c.capability_tag))
        logger.info(f"Found {len(clusters)} overlap clusters")
        return clusters


def similar_hook_footprints(
    plugins: Sequence[Plugin], min_common: int = 5, min_similarity: float = 0.2
) -> list[HookFootprintMatch]:
    """Plugin pairs whose hook-name sets overlap strongly.

    Similarity is ``common / max(len(a), len(b))``. A pair is reported when
    it shares more than ``min_common`` hook names and its similarity exceeds
    ``min_similarity``. Sorted by similarity descending, then plugin ids.
    """
    footprints = sorted(
        ((p.id, frozenset(h.hook_name for h in p.declared_hooks)) for p in plugins),
        key=lambda item: item[0],
    )
    matches = []
    for i, (id_a, hooks_a) in enumerate(footprints):
        for id_b, hooks_b in footprints[i + 1 :]:
            common = len(hooks_a & hooks_b)
            if common <= min_common:
                continue
            similarity = common / max(len(hooks_a), len(hooks_b))
            if similarity > min_similarity:
                matches.append(HookFootprintMatch(id_a, id_b, common, round(similarity, 4)))

    matches.sort(key=lambda m: (-m.similarity, m.plugin_a, m.plugin_b))
    return matches
