"""Configuration loading and management for Plugin Conflict Mapper.

Configuration sources are merged in priority order:
    1. Defaults (defined in MapperConfig)
    2. Global config (~/.conflict-mapper.toml)
    3. Project config (./conflict-mapper.toml)
    4. Explicit config file
    5. Environment variables (CONFLICT_MAPPER_* prefix)
    6. Keyword overrides (CLI flags)

Example:
    >>> config = load_config(plugins_dir="/srv/wp/wp-content/plugins")
    >>> config.cache_ttl_seconds
    3600
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError

Verbosity = Literal["quiet", "normal", "verbose"]
CacheBackend = Literal["disk", "memory"]

ENV_PREFIX = "CONFLICT_MAPPER_"


@dataclass(frozen=True)
class ScoringConfig:
    """Ranking weights and heuristic tuning.

    Attributes:
        Severity weights:
            weight_low / weight_medium / weight_high / weight_critical:
                Points subtracted per conflict of that severity

        Penalty scaling:
            conflict_weight: Multiplier applied to the summed conflict penalty
            overlap_weight: Points for a fully redundant overlap (redundancy 1.0)

        Recommendation thresholds:
            keep_threshold: score >= this -> Keep
            review_threshold: score >= this (and < keep) -> Review, else Replace

        Base quality heuristic:
            large_plugin_mb: Size above which the size penalty starts
            max_size_penalty: Cap on the size penalty
            stale_after_days: Age of last modification before recency penalty
            max_staleness_penalty: Cap on the recency penalty
            missing_version_penalty: Applied when no version header was found
    """

    weight_low: float = 1.0
    weight_medium: float = 3.0
    weight_high: float = 7.0
    weight_critical: float = 15.0

    conflict_weight: float = 1.0
    overlap_weight: float = 20.0

    keep_threshold: float = 70.0
    review_threshold: float = 40.0

    large_plugin_mb: float = 10.0
    max_size_penalty: float = 10.0
    stale_after_days: int = 365
    max_staleness_penalty: float = 15.0
    missing_version_penalty: float = 20.0

    def __post_init__(self) -> None:
        weights = [self.weight_low, self.weight_medium, self.weight_high, self.weight_critical]
        if any(w < 0 for w in weights):
            raise ValueError("severity weights must be non-negative")
        if weights != sorted(weights):
            raise ValueError("severity weights must not decrease with severity")
        if self.conflict_weight < 0 or self.overlap_weight < 0:
            raise ValueError("penalty weights must be non-negative")
        if not 0.0 <= self.review_threshold <= self.keep_threshold <= 100.0:
            raise ValueError("thresholds must satisfy 0 <= review <= keep <= 100")
        if self.large_plugin_mb <= 0:
            raise ValueError("large_plugin_mb must be positive")
        if self.stale_after_days < 1:
            raise ValueError("stale_after_days must be at least 1")


DEFAULT_SCORING = ScoringConfig()


@dataclass(frozen=True)
class MapperConfig:
    """Configuration for a scan pipeline.

    Attributes:
        Sources:
            plugins_dir: Directory holding installed plugins
            data_dir: Directory for history.db and the disk cache
            known_conflicts_file: Alternative known-conflicts TOML (None = bundled)

        Scanning:
            max_files_per_plugin: Source files read per plugin
            include_inactive: Consider inactive plugins during conflict detection
            late_priority: Priority at or above which a hook callback runs "last"
            finalizer_callbacks: Callbacks that must run last on their hook

        Caching:
            cache_enabled / cache_backend / cache_ttl_seconds (0 = entries expire at once)
            scan_type: Tag mixed into the cache fingerprint

        Pipeline:
            scan_timeout_seconds: Wall-clock limit for one scan (0 = none)
            history_retention_days: Default age for cleanup

        Output:
            verbosity: Logging verbosity level
    """

    plugins_dir: str = "wp-content/plugins"
    data_dir: str = ".conflict-mapper"
    known_conflicts_file: Optional[str] = None

    max_files_per_plugin: int = 500
    include_inactive: bool = False
    late_priority: int = 9999
    finalizer_callbacks: list[str] = field(
        default_factory=lambda: [
            "wp_ob_end_flush_all",
            "ob_end_flush",
            "ob_end_flush_all",
            "ob_get_flush",
        ]
    )

    cache_enabled: bool = True
    cache_backend: CacheBackend = "disk"
    cache_ttl_seconds: int = 3600
    scan_type: str = "full"

    scan_timeout_seconds: int = 300
    history_retention_days: int = 30

    verbosity: Verbosity = "normal"

    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self) -> None:
        if self.max_files_per_plugin < 1:
            raise ValueError("max_files_per_plugin must be at least 1")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must be non-negative")
        if self.cache_backend not in ("disk", "memory"):
            raise ValueError("cache_backend must be 'disk' or 'memory'")
        if self.scan_timeout_seconds < 0:
            raise ValueError("scan_timeout_seconds must be non-negative")
        if self.history_retention_days < 1:
            raise ValueError("history_retention_days must be at least 1")
        if not self.scan_type:
            raise ValueError("scan_type must not be empty")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise ValueError("verbosity must be quiet, normal or verbose")

    @property
    def cache_dir(self) -> Path:
        return Path(self.data_dir) / "cache"

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / "history.db"


def load_config(config_file: Optional[Path] = None, **overrides) -> MapperConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so callers can pass optional flags through.

    Returns:
        Validated MapperConfig instance

    Raises:
        ConfigurationError: If a config file or value is invalid
    """
    merged: dict[str, Any] = {}

    global_config = Path.home() / ".conflict-mapper.toml"
    if global_config.exists():
        merged.update(_load_toml_checked(global_config, "global config"))

    project_config = Path.cwd() / "conflict-mapper.toml"
    if project_config.exists():
        merged.update(_load_toml_checked(project_config, "project config"))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_checked(config_file, "config file"))

    merged.update(_load_env_vars())

    if overrides.pop("verbose", False):
        overrides["verbosity"] = "verbose"
    if overrides.pop("quiet", False):
        overrides["verbosity"] = "quiet"
    merged.update({k: v for k, v in overrides.items() if v is not None})

    scoring = merged.pop("scoring", None)
    if isinstance(scoring, dict):
        try:
            merged["scoring"] = ScoringConfig(**scoring)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid [scoring] config: {e}")
    elif isinstance(scoring, ScoringConfig):
        merged["scoring"] = scoring

    try:
        return MapperConfig(**merged)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_toml_checked(path: Path, label: str) -> dict:
    try:
        return _load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid {label} '{path}': {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from CONFLICT_MAPPER_* environment variables.

    List and nested fields are not settable from the environment.
    """
    type_hints = get_type_hints(MapperConfig)
    result: dict[str, Any] = {}

    for field_name in MapperConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type."""
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none = [t for t in args if t is not type(None)]
        if non_none:
            type_hint = non_none[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is list or type_hint is list or type_hint is ScoringConfig:
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    with open(path, "rb") as f:
        return tomllib.load(f)
