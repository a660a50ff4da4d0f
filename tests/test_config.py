"""Tests for configuration loading."""

import os

import pytest

from conflict_mapper.config import MapperConfig, ScoringConfig, load_config
from conflict_mapper.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """No global/project config files or CONFLICT_MAPPER_* variables leak in."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("CONFLICT_MAPPER_"):
            monkeypatch.delenv(key)


class TestDefaults:
    def test_defaults(self):
        config = load_config()
        assert config == MapperConfig()
        assert config.late_priority == 9999
        assert config.cache_ttl_seconds == 3600
        assert config.scoring.keep_threshold == 70.0

    def test_paths(self):
        config = MapperConfig(data_dir="/tmp/cm")
        assert str(config.db_path) == "/tmp/cm/history.db"
        assert str(config.cache_dir) == "/tmp/cm/cache"


class TestOverrides:
    def test_none_overrides_ignored(self):
        config = load_config(plugins_dir=None, data_dir="/srv/data")
        assert config.plugins_dir == MapperConfig().plugins_dir
        assert config.data_dir == "/srv/data"

    def test_verbose_and_quiet(self):
        assert load_config(verbose=True).verbosity == "verbose"
        assert load_config(quiet=True).verbosity == "quiet"

    def test_invalid_override(self):
        with pytest.raises(ConfigurationError):
            load_config(cache_backend="redis")


class TestFiles:
    def test_project_config(self, tmp_path):
        (tmp_path / "conflict-mapper.toml").write_text(
            'plugins_dir = "/srv/wp/plugins"\nlate_priority = 500\n\n[scoring]\noverlap_weight = 10.0\n'
        )
        config = load_config()
        assert config.plugins_dir == "/srv/wp/plugins"
        assert config.late_priority == 500
        assert config.scoring == ScoringConfig(overlap_weight=10.0)

    def test_explicit_file_wins_over_project(self, tmp_path):
        (tmp_path / "conflict-mapper.toml").write_text("late_priority = 500\n")
        explicit = tmp_path / "explicit.toml"
        explicit.write_text("late_priority = 700\n")
        assert load_config(config_file=explicit).late_priority == 700

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(config_file=tmp_path / "missing.toml")

    def test_invalid_toml(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("late_priority = = 1")
        with pytest.raises(ConfigurationError):
            load_config(config_file=bad)

    def test_invalid_scoring(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[scoring]\nweight_low = 20.0\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=bad)

    def test_unknown_key(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("no_such_option = 1\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=bad)


class TestEnvironment:
    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_MAPPER_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("CONFLICT_MAPPER_INCLUDE_INACTIVE", "yes")
        monkeypatch.setenv("CONFLICT_MAPPER_CACHE_BACKEND", "memory")
        config = load_config()
        assert config.cache_ttl_seconds == 60
        assert config.include_inactive is True
        assert config.cache_backend == "memory"

    def test_override_beats_env(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_MAPPER_DATA_DIR", "/from/env")
        assert load_config(data_dir="/from/flag").data_dir == "/from/flag"

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_MAPPER_INCLUDE_INACTIVE", "maybe")
        with pytest.raises(ConfigurationError):
            load_config()


class TestScoringValidation:
    def test_decreasing_weights_rejected(self):
        with pytest.raises(ValueError):
            ScoringConfig(weight_high=1.0)

    def test_thresholds_ordered(self):
        with pytest.raises(ValueError):
            ScoringConfig(keep_threshold=30.0, review_threshold=40.0)
