"""Known-conflicts dataset: curated plugin pairs that break each other.

The bundled dataset lives in ``conflict_mapper/data/known_conflicts.toml``;
an alternative file can be configured with ``known_conflicts_file``. Lookup
is symmetric in the two plugin slugs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from .exceptions import KnownConflictsError
from .logging_config import get_logger
from .models import Plugin, Severity
from .scanning.scanner import normalize_slug

logger = get_logger(__name__)

DATASET_VERSION = 1
BUNDLED_DATASET = "known_conflicts.toml"


@dataclass(frozen=True)
class KnownConflict:
    """One curated incompatibility between two plugin slugs.

    ``reported_severity`` is kept for display only; detection reports every
    known pair as Critical.
    """

    plugin_a: str
    plugin_b: str
    kind: str
    description: str
    resolution: str = ""
    reported_severity: Severity = Severity.CRITICAL
    affected_versions: dict[str, SpecifierSet] = field(default_factory=dict, hash=False)
    reported: Optional[str] = None

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.plugin_a, self.plugin_b))

    def applies_to(self, versions: Mapping[str, str]) -> bool:
        """True unless an ``affected_versions`` constraint excludes the installed version.

        An installed version that is not PEP 440 parseable is treated as
        affected.
        """
        for slug, specifier in self.affected_versions.items():
            installed = versions.get(slug)
            if installed is None:
                continue
            try:
                parsed = Version(installed)
            except InvalidVersion:
                continue
            if not specifier.contains(parsed, prereleases=True):
                return False
        return True


class CompatibilityTable:
    """Indexed, read-only view over the known-conflicts dataset."""

    def __init__(self, entries: Iterable[KnownConflict] = (), version: int = DATASET_VERSION):
        self.version = version
        self._entries = tuple(entries)
        self._by_pair: dict[frozenset[str], list[KnownConflict]] = {}
        for entry in self._entries:
            self._by_pair.setdefault(entry.pair, []).append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[KnownConflict]:
        return iter(self._entries)

    @classmethod
    def empty(cls) -> "CompatibilityTable":
        return cls(())

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "CompatibilityTable":
        """Load the dataset from ``path``, or the bundled copy when None.

        Raises:
            KnownConflictsError: The file is missing, not TOML, or has an
                unsupported version or an invalid entry.
        """
        try:
            if path is None:
                text = resources.files("conflict_mapper.data").joinpath(BUNDLED_DATASET).read_text(
                    encoding="utf-8"
                )
                source = f"<bundled {BUNDLED_DATASET}>"
            else:
                text = Path(path).read_text(encoding="utf-8")
                source = str(path)
        except (OSError, ModuleNotFoundError) as e:
            raise KnownConflictsError(
                f"Cannot read known-conflicts dataset: {e}",
                context={"path": str(path) if path else BUNDLED_DATASET},
            ) from e

        try:
            data = _loads_toml(text)
        except ValueError as e:
            raise KnownConflictsError(
                f"Known-conflicts dataset is not valid TOML: {e}", context={"path": source}
            ) from e

        table = cls.from_dict(data, source=source)
        logger.debug(f"Loaded {len(table)} known conflicts from {source}")
        return table

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<memory>") -> "CompatibilityTable":
        version = data.get("version")
        if version != DATASET_VERSION:
            raise KnownConflictsError(
                f"Unsupported known-conflicts dataset version: {version!r}",
                context={"path": source, "expected": DATASET_VERSION},
            )
        raw_entries = data.get("conflict", [])
        if not isinstance(raw_entries, list):
            raise KnownConflictsError(
                "'conflict' must be an array of tables", context={"path": source}
            )
        entries = [_parse_entry(raw, index, source) for index, raw in enumerate(raw_entries)]
        return cls(entries, version=version)

    # ── Lookup ────────────────────────────────────────────────

    def lookup(self, slug_a: str, slug_b: str) -> list[KnownConflict]:
        """Entries for the unordered pair; ``lookup(a, b) == lookup(b, a)``."""
        return list(self._by_pair.get(frozenset((slug_a, slug_b)), ()))

    def matches(self, plugins: Iterable[Plugin]) -> list[KnownConflict]:
        """Entries whose two plugins are both present and version-affected."""
        versions = {p.id: p.version for p in plugins}
        found = []
        for entry in self._entries:
            if entry.plugin_a in versions and entry.plugin_b in versions:
                if entry.applies_to(versions):
                    found.append(entry)
        return found


def _parse_entry(raw: Any, index: int, source: str) -> KnownConflict:
    def fail(reason: str) -> KnownConflictsError:
        return KnownConflictsError(
            f"Invalid known-conflicts entry #{index}: {reason}",
            context={"path": source, "index": index},
        )

    if not isinstance(raw, Mapping):
        raise fail("not a table")

    for key in ("plugin_a", "plugin_b", "description"):
        if not isinstance(raw.get(key), str) or not raw[key].strip():
            raise fail(f"missing '{key}'")

    plugin_a = normalize_slug(raw["plugin_a"])
    plugin_b = normalize_slug(raw["plugin_b"])
    if plugin_a == plugin_b:
        raise fail("plugin_a and plugin_b are the same plugin")

    try:
        severity = Severity.parse(str(raw.get("severity", "critical")))
    except ValueError as e:
        raise fail(str(e)) from e

    affected: dict[str, SpecifierSet] = {}
    raw_affected = raw.get("affected_versions", {})
    if not isinstance(raw_affected, Mapping):
        raise fail("'affected_versions' must be a table")
    for slug, spec in raw_affected.items():
        try:
            affected[normalize_slug(slug)] = SpecifierSet(str(spec))
        except InvalidSpecifier as e:
            raise fail(f"bad version specifier {spec!r} for {slug}") from e

    reported = raw.get("reported")
    return KnownConflict(
        plugin_a=plugin_a,
        plugin_b=plugin_b,
        kind=str(raw.get("kind", "conflict")),
        description=raw["description"].strip(),
        resolution=str(raw.get("resolution", "")).strip(),
        reported_severity=severity,
        affected_versions=affected,
        reported=str(reported) if reported is not None else None,
    )


def _loads_toml(text: str) -> dict:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    return tomllib.loads(text)
