"""Shared test fixtures for Plugin Conflict Mapper tests."""

from pathlib import Path
from typing import Iterable, Optional

import pytest

from conflict_mapper.config import MapperConfig
from conflict_mapper.models import HookRegistration, Plugin, RawExtensionMetadata, Resource, ResourceKind


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def make_plugin(
    plugin_id: str,
    hooks: Iterable[tuple] = (),
    capabilities: Iterable[str] = (),
    name: Optional[str] = None,
    version: str = "1.0.0",
    is_active: bool = True,
    resources: Iterable[tuple[ResourceKind, str]] = (),
    **kwargs,
) -> Plugin:
    """Build a Plugin; ``hooks`` are (hook_name, priority) or (hook_name, priority, callback)."""
    registrations = frozenset(
        HookRegistration(
            hook_name=h[0],
            priority=h[1],
            plugin_id=plugin_id,
            callback_identity=h[2] if len(h) > 2 else f"{plugin_id}_{h[0]}",
        )
        for h in hooks
    )
    return Plugin(
        id=plugin_id,
        name=name or plugin_id.upper(),
        version=version,
        file_path=f"/plugins/{plugin_id}/{plugin_id}.php",
        is_active=is_active,
        declared_hooks=registrations,
        declared_capabilities=frozenset(capabilities),
        declared_resources=frozenset(Resource(kind, n) for kind, n in resources),
        **kwargs,
    )


def make_raw(
    slug: str,
    name: Optional[str] = "Plugin",
    version: Optional[str] = "1.0.0",
    hooks: Iterable = (),
    **kwargs,
) -> RawExtensionMetadata:
    """Build registry output for ``StaticRegistry``."""
    headers = {}
    if name is not None:
        headers["Plugin Name"] = name
    if version is not None:
        headers["Version"] = version
    headers.update(kwargs.pop("headers", {}))
    return RawExtensionMetadata(
        slug=slug,
        file_path=f"/plugins/{slug}/{slug}.php",
        headers=headers,
        hooks=tuple(hooks),
        **kwargs,
    )


@pytest.fixture
def test_config(tmp_path):
    """Config writing into tmp_path, memory cache, no pipeline timeout."""
    return MapperConfig(
        plugins_dir=str(tmp_path / "plugins"),
        data_dir=str(tmp_path / "data"),
        cache_backend="memory",
        scan_timeout_seconds=0,
    )


@pytest.fixture
def three_plugin_entries():
    """P1 and P2 hook init at 10, P3 hooks init at 20."""
    return [
        make_raw("p1", name="P1", hooks=[{"hook": "init", "callback": "p1_init", "priority": 10}]),
        make_raw("p2", name="P2", hooks=[{"hook": "init", "callback": "p2_init", "priority": 10}]),
        make_raw("p3", name="P3", hooks=[{"hook": "init", "callback": "p3_init", "priority": 20}]),
    ]


PLUGIN_SOURCES = {
    "wp-super-cache/wp-cache.php": """<?php
/*
Plugin Name: WP Super Cache
Version: 1.9.4
Description: Very fast page caching plugin.
Author: Automattic
*/
add_action( 'init', 'wpsc_init' );
add_action( 'shutdown', 'wp_cache_ob_end', PHP_INT_MAX );
function wpsc_init() {}
global $cache_enabled;
""",
    "w3-total-cache/w3-total-cache.php": """<?php
/**
 * Plugin Name: W3 Total Cache
 * Version: 2.7.0
 * Description: Search engine and performance optimization with page caching and minify.
 */
add_action( 'init', array( $this, 'init' ) );
add_action( 'shutdown', 'w3tc_ob_callback', 9999 );
function wpsc_init() {}
global $cache_enabled, $wpdb;
""",
    "hello.php": """<?php
/*
Plugin Name: Hello Dolly
Version: 1.7.2
*/
add_action( 'admin_notices', 'hello_dolly' );
""",
}


@pytest.fixture
def plugins_dir(tmp_path) -> Path:
    """A small WordPress-style plugins directory."""
    root = tmp_path / "plugins"
    for rel, source in PLUGIN_SOURCES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
    (root / "readme.txt").write_text("not a plugin\n")
    return root
