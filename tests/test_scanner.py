"""Tests for PluginScanner and capability inference."""

import pytest

from conflict_mapper.exceptions import ScanError
from conflict_mapper.models import CodeMetrics, HookRegistration, ResourceKind, SecurityIssue, Severity
from conflict_mapper.registry.directory import DirectoryRegistry
from conflict_mapper.registry.static import StaticRegistry
from conflict_mapper.scanning import PluginScanner
from conflict_mapper.scanning.capabilities import infer_capabilities, normalize_tag
from conflict_mapper.scanning.scanner import UNKNOWN_VERSION, normalize_slug

from conftest import make_raw


class _BrokenRegistry:
    def list_installed(self):
        raise PermissionError("denied")

    def is_active(self, plugin_id):
        return True


class TestNormalizeSlug:
    def test_lowercases_and_collapses(self):
        assert normalize_slug("Yoast SEO") == "yoast-seo"
        assert normalize_slug("wp_super_cache") == "wp-super-cache"

    def test_strips_php_suffix(self):
        assert normalize_slug("hello.php") == "hello"

    def test_empty(self):
        assert normalize_slug("  __ ") == ""


class TestCapabilities:
    def test_keywords(self):
        tags = infer_capabilities("WP Super Cache", "Very fast page caching plugin.")
        assert tags == frozenset({"caching"})

    def test_word_boundary(self):
        assert "ecommerce" not in infer_capabilities("Backup Restore")

    def test_declared_tags_are_normalized(self):
        tags = infer_capabilities("Thing", declared=["Image Optimization"])
        assert "image-optimization" in tags

    def test_normalize_tag(self):
        assert normalize_tag("  SEO Tools ") == "seo-tools"


class TestPluginScanner:
    def test_plugins_sorted_by_id(self):
        registry = StaticRegistry([make_raw("zeta"), make_raw("alpha"), make_raw("Mid Plugin")])
        result = PluginScanner(registry).scan()
        assert [p.id for p in result.plugins] == ["alpha", "mid-plugin", "zeta"]

    def test_missing_version_defaults(self):
        result = PluginScanner(StaticRegistry([make_raw("a", version=None)])).scan()
        assert result.plugins[0].version == UNKNOWN_VERSION
        assert any("missing version" in w for w in result.warnings)

    def test_missing_name_uses_slug(self):
        result = PluginScanner(StaticRegistry([make_raw("a", name=None)])).scan()
        assert result.plugins[0].name == "a"

    def test_malformed_hook_skips_plugin(self):
        registry = StaticRegistry(
            [
                make_raw("good", hooks=[{"hook": "init", "callback": "x", "priority": 10}]),
                make_raw("bad", hooks=[{"callback": "x", "priority": 10}]),
            ]
        )
        result = PluginScanner(registry).scan()
        assert [p.id for p in result.plugins] == ["good"]
        assert any("without a hook name" in w for w in result.warnings)

    def test_non_numeric_priority_falls_back(self):
        registry = StaticRegistry(
            [make_raw("a", hooks=[{"hook": "init", "callback": "x", "priority": "$prio"}])]
        )
        result = PluginScanner(registry).scan()
        (hook,) = result.plugins[0].declared_hooks
        assert hook == HookRegistration("init", 10, "a", "x")
        assert any("non-numeric priority" in w for w in result.warnings)

    def test_string_priority_is_parsed(self):
        registry = StaticRegistry(
            [make_raw("a", hooks=[{"hook": "init", "callback": "x", "priority": " 20 "}])]
        )
        (hook,) = PluginScanner(registry).scan().plugins[0].declared_hooks
        assert hook.priority == 20

    def test_empty_slug_skipped(self):
        result = PluginScanner(StaticRegistry([make_raw("--"), make_raw("ok")])).scan()
        assert [p.id for p in result.plugins] == ["ok"]
        assert len(result.warnings) == 1

    def test_duplicate_ids_keep_first(self):
        registry = StaticRegistry([make_raw("My Plugin", name="First"), make_raw("my_plugin", name="Second")])
        result = PluginScanner(registry).scan()
        assert len(result.plugins) == 1
        assert result.plugins[0].name == "First"
        assert any("duplicate" in w for w in result.warnings)

    def test_activation(self):
        registry = StaticRegistry([make_raw("a"), make_raw("b")], active=["a"])
        plugins = {p.id: p for p in PluginScanner(registry).scan().plugins}
        assert plugins["a"].is_active
        assert not plugins["b"].is_active

    def test_resources(self):
        registry = StaticRegistry(
            [make_raw("a", functions=("a_fn",), globals=("a_state",), tables=("WP_A_LOG",))]
        )
        plugin = PluginScanner(registry).scan().plugins[0]
        kinds = {(r.kind, r.name) for r in plugin.declared_resources}
        assert kinds == {
            (ResourceKind.FUNCTION, "a_fn"),
            (ResourceKind.GLOBAL, "a_state"),
            (ResourceKind.TABLE, "wp_a_log"),
        }

    def test_unreadable_registry(self):
        with pytest.raises(ScanError):
            PluginScanner(_BrokenRegistry()).scan()

    def test_empty_registry(self):
        result = PluginScanner(StaticRegistry([])).scan()
        assert result.plugins == ()
        assert result.warnings == ()

    def test_directory_scan_is_deterministic(self, plugins_dir):
        first = PluginScanner(DirectoryRegistry(plugins_dir)).scan()
        second = PluginScanner(DirectoryRegistry(plugins_dir)).scan()
        assert first == second
        plugins = {p.id: p for p in first.plugins}
        assert plugins["w3-total-cache"].declared_capabilities == frozenset({"caching", "seo"})
        assert plugins["hello"].declared_capabilities == frozenset()


class TestSourceMetrics:
    def test_metrics_are_built(self):
        raw_metrics = {
            "source_lines": "120",
            "function_count": 4,
            "class_count": 1,
            "css_files": 2,
            "js_files": 0,
            "security_issues": [
                {"type": "xss", "severity": "high", "file": "a.php", "line": 7, "message": "echo"},
            ],
        }
        plugin = PluginScanner(StaticRegistry([make_raw("a", metrics=raw_metrics)])).scan().plugins[0]
        assert plugin.metrics == CodeMetrics(
            source_lines=120,
            function_count=4,
            class_count=1,
            css_files=2,
            js_files=0,
            security_issues=(SecurityIssue("xss", Severity.HIGH, "a.php", 7, "echo"),),
        )

    def test_malformed_finding_is_skipped(self):
        raw_metrics = {
            "source_lines": 1,
            "security_issues": [
                {"type": "xss", "severity": "catastrophic"},
                "not a mapping",
                {"type": "eval", "severity": "critical", "line": 2},
            ],
        }
        result = PluginScanner(StaticRegistry([make_raw("a", metrics=raw_metrics)])).scan()
        issues = result.plugins[0].metrics.security_issues
        assert [i.severity for i in issues] == [Severity.CRITICAL]
        assert sum("malformed security finding" in w for w in result.warnings) == 2

    def test_non_mapping_metrics_are_ignored(self):
        result = PluginScanner(StaticRegistry([make_raw("a", metrics=[1, 2])])).scan()
        assert result.plugins[0].metrics is None
        assert any("source metrics" in w for w in result.warnings)

    def test_static_entries_have_no_metrics(self):
        assert PluginScanner(StaticRegistry([make_raw("a")])).scan().plugins[0].metrics is None

    def test_directory_plugins_have_metrics(self, plugins_dir):
        plugins = {p.id: p for p in PluginScanner(DirectoryRegistry(plugins_dir)).scan().plugins}
        assert plugins["wp-super-cache"].metrics.function_count == 1
        assert plugins["wp-super-cache"].metrics.security_issues == ()
