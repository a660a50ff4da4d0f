"""Capability tag inference from plugin names and descriptions."""

from __future__ import annotations

import re
from typing import Iterable

# tag -> keywords matched against "name + description" (lowercased)
CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "seo": ("seo", "search engine", "sitemap", "schema", "robots", "yoast", "rank math"),
    "caching": ("cache", "caching", "minify", "cdn", "page speed"),
    "security": ("security", "firewall", "malware", "brute force", "wordfence", "sucuri"),
    "backup": ("backup", "restore", "migration", "duplicator", "updraft"),
    "forms": ("form builder", "contact form", "survey", "gravity forms", "ninja forms", "wpforms"),
    "ecommerce": ("woocommerce", "shop", "cart", "checkout", "payment", "ecommerce", "store"),
    "social": ("social", "share buttons", "sharing", "facebook", "twitter", "instagram"),
    "analytics": ("analytics", "statistics", "tracking", "stats"),
    "media": ("gallery", "video", "slider", "lightbox"),
    "image-optimization": ("image optimi", "compress images", "webp", "lazy load", "smush"),
    "email": ("email", "newsletter", "mailchimp", "smtp"),
    "builder": ("page builder", "elementor", "visual composer", "divi", "beaver builder"),
    "spam": ("spam", "antispam", "akismet", "recaptcha", "captcha"),
    "translation": ("translation", "multilingual", "translate", "wpml", "polylang"),
    "membership": ("membership", "paywall", "subscriptions", "member area"),
}

_TAG_NORMALIZE_RE = re.compile(r"[^a-z0-9]+")


def normalize_tag(tag: str) -> str:
    """Lowercase, collapse separators to '-' ("Image Optimization" -> "image-optimization")."""
    return _TAG_NORMALIZE_RE.sub("-", tag.strip().lower()).strip("-")


def infer_capabilities(
    name: str,
    description: str = "",
    declared: Iterable[str] = (),
    categories: dict[str, tuple[str, ...]] = CATEGORY_KEYWORDS,
) -> frozenset[str]:
    """Union of explicitly declared tags and keyword-inferred tags."""
    tags = {normalize_tag(t) for t in declared if normalize_tag(t)}
    text = f"{name} {description}".lower()
    for tag, keywords in categories.items():
        # Keywords must start on a word boundary: "store" must not hit "restore"
        if any(re.search(rf"\b{re.escape(keyword)}", text) for keyword in keywords):
            tags.add(tag)
    return frozenset(tags)
