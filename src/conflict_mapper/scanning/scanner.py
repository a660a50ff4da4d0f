"""Plugin scanner: turns untrusted registry output into ``Plugin`` records."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Optional

from ..config import MapperConfig
from ..exceptions import MalformedPluginMetadata, ScanError
from ..logging_config import get_logger
from ..models import (
    CodeMetrics,
    HookRegistration,
    Plugin,
    RawExtensionMetadata,
    Resource,
    ResourceKind,
    ScanResult,
    SecurityIssue,
    Severity,
)
from ..registry.base import ExtensionRegistry
from .capabilities import infer_capabilities

logger = get_logger(__name__)

UNKNOWN_VERSION = "0.0.0"
DEFAULT_PRIORITY = 10

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_slug(raw: str) -> str:
    """Plugin identity: lowercase, non-alphanumerics collapsed to '-'.

    "Yoast SEO" -> "yoast-seo", "wp_super_cache" -> "wp-super-cache".
    A trailing ``.php`` (single-file plugins) is dropped.
    """
    raw = raw.strip().lower()
    if raw.endswith(".php"):
        raw = raw[: -len(".php")]
    return _SLUG_RE.sub("-", raw).strip("-")


class PluginScanner:
    """Enumerate installed extensions and extract static metadata.

    Deterministic for identical registry state: plugins are returned sorted
    by id. A registry that cannot be read raises ``ScanError``; a malformed
    entry is skipped with a warning and the scan continues.
    """

    def __init__(self, registry: ExtensionRegistry, config: Optional[MapperConfig] = None):
        self.registry = registry
        self.config = config or MapperConfig()

    def scan(self) -> ScanResult:
        try:
            raw_entries = self.registry.list_installed()
        except ScanError:
            raise
        except OSError as e:
            raise ScanError(f"Extension registry unreadable: {e}") from e

        plugins: dict[str, Plugin] = {}
        warnings: list[str] = []

        for raw in raw_entries:
            try:
                plugin = self._build_plugin(raw, warnings)
            except MalformedPluginMetadata as e:
                logger.warning(f"Skipping malformed plugin entry: {e.message}")
                warnings.append(e.message)
                continue

            if plugin.id in plugins:
                message = f"{plugin.id}: duplicate plugin id from {plugin.file_path}, entry skipped"
                logger.warning(message)
                warnings.append(message)
                continue
            plugins[plugin.id] = plugin

        ordered = tuple(plugins[pid] for pid in sorted(plugins))
        logger.info(f"Scan complete: {len(ordered)} plugins, {len(warnings)} warnings")
        return ScanResult(plugins=ordered, warnings=tuple(warnings))

    # ── Entry conversion ──────────────────────────────────────

    def _build_plugin(self, raw: RawExtensionMetadata, warnings: list[str]) -> Plugin:
        raw_slug = raw.slug if isinstance(raw.slug, str) else ""
        slug = normalize_slug(raw_slug)
        if not slug:
            raise MalformedPluginMetadata(
                f"entry at {raw.file_path!r} has no usable slug",
                context={"file_path": str(raw.file_path)},
            )
        if not isinstance(raw.headers, Mapping):
            raise MalformedPluginMetadata(
                f"{slug}: plugin header is not a mapping",
                context={"plugin": slug},
            )

        for error in raw.read_errors:
            warnings.append(f"{slug}: {error}")

        headers = raw.headers
        name = _clean(headers.get("Plugin Name"))
        if not name:
            name = slug
            warnings.append(f"{slug}: missing plugin name, using slug")
        version = _clean(headers.get("Version"))
        if not version:
            version = UNKNOWN_VERSION
            warnings.append(f"{slug}: missing version, assuming {UNKNOWN_VERSION}")
        description = _clean(headers.get("Description"))

        is_active = raw.is_active if raw.is_active is not None else self.registry.is_active(raw_slug)

        hooks = frozenset(self._build_hook(slug, entry, warnings) for entry in raw.hooks)

        declared_tags = [t for t in _clean(headers.get("Capabilities")).split(",") if t.strip()]

        resources = frozenset(
            [Resource(ResourceKind.FUNCTION, n) for n in raw.functions if n]
            + [Resource(ResourceKind.GLOBAL, n) for n in raw.globals if n]
            + [Resource(ResourceKind.TABLE, n.lower()) for n in raw.tables if n]
        )

        return Plugin(
            id=slug,
            name=name,
            version=version,
            file_path=str(raw.file_path),
            is_active=bool(is_active),
            declared_hooks=hooks,
            declared_capabilities=infer_capabilities(name, description, declared_tags),
            size_bytes=max(0, _as_int(raw.size_bytes, 0)),
            last_modified=max(0.0, _as_float(raw.last_modified, 0.0)),
            description=description,
            author=_clean(headers.get("Author")),
            declared_resources=resources,
            metrics=self._build_metrics(slug, raw.metrics, warnings),
        )

    def _build_hook(self, slug: str, entry: Any, warnings: list[str]) -> HookRegistration:
        if not isinstance(entry, Mapping):
            raise MalformedPluginMetadata(
                f"{slug}: hook entry is not a mapping", context={"plugin": slug}
            )
        hook_name = entry.get("hook")
        if not isinstance(hook_name, str) or not hook_name.strip():
            raise MalformedPluginMetadata(
                f"{slug}: hook entry without a hook name", context={"plugin": slug}
            )

        raw_priority = entry.get("priority", DEFAULT_PRIORITY)
        priority = _as_int(raw_priority, None)
        if priority is None:
            warnings.append(
                f"{slug}: non-numeric priority {raw_priority!r} on {hook_name}, "
                f"assuming {DEFAULT_PRIORITY}"
            )
            priority = DEFAULT_PRIORITY

        return HookRegistration(
            hook_name=hook_name.strip(),
            callback_identity=str(entry.get("callback", "") or ""),
            priority=priority,
            plugin_id=slug,
        )

    def _build_metrics(self, slug: str, raw: Any, warnings: list[str]) -> Optional[CodeMetrics]:
        if raw is None:
            return None
        if not isinstance(raw, Mapping):
            warnings.append(f"{slug}: source metrics are not a mapping, ignored")
            return None

        issues = []
        for entry in raw.get("security_issues") or ():
            issue = _build_issue(entry)
            if issue is None:
                warnings.append(f"{slug}: malformed security finding {entry!r} skipped")
                continue
            issues.append(issue)

        return CodeMetrics(
            source_lines=max(0, _as_int(raw.get("source_lines"), 0)),
            function_count=max(0, _as_int(raw.get("function_count"), 0)),
            class_count=max(0, _as_int(raw.get("class_count"), 0)),
            css_files=max(0, _as_int(raw.get("css_files"), 0)),
            js_files=max(0, _as_int(raw.get("js_files"), 0)),
            security_issues=tuple(issues),
        )


def _build_issue(entry: Any) -> Optional[SecurityIssue]:
    if not isinstance(entry, Mapping):
        return None
    try:
        severity = Severity.parse(str(entry.get("severity", "")))
    except ValueError:
        return None
    issue_type = _clean(entry.get("type"))
    if not issue_type:
        return None
    return SecurityIssue(
        type=issue_type,
        severity=severity,
        file=_clean(entry.get("file")),
        line=max(0, _as_int(entry.get("line"), 0)),
        message=_clean(entry.get("message")),
        function=_clean(entry.get("function")),
    )


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
