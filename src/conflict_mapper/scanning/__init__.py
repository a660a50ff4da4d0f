"""Plugin scanning: registry output -> immutable ``Plugin`` records."""

from .capabilities import CATEGORY_KEYWORDS, infer_capabilities, normalize_tag
from .scanner import UNKNOWN_VERSION, PluginScanner, normalize_slug

__all__ = [
    "PluginScanner",
    "normalize_slug",
    "UNKNOWN_VERSION",
    "infer_capabilities",
    "normalize_tag",
    "CATEGORY_KEYWORDS",
]
