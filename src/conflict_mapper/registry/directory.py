"""Filesystem registry: reads a WordPress-style plugins directory.

Each direct sub-directory of the root is one plugin; a top-level ``*.php``
file carrying a ``Plugin Name:`` header is a single-file plugin. Hook
registrations and global symbol claims are extracted with regular
expressions, so results are approximate. Hook calls that cannot be read
statically (runtime-built hook names) are reported through ``read_errors``.
Each plugin also gets source metrics and a security pattern scan.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError
from ..logging_config import get_logger
from ..models import RawExtensionMetadata
from .security import scan_source

logger = get_logger(__name__)

ACTIVE_LIST_NAME = "active_plugins.json"

PHP_INT_MAX = 9223372036854775807
PHP_INT_MIN = -PHP_INT_MAX - 1

HEADER_FIELDS = {
    "Plugin Name": "Plugin Name",
    "Version": "Version",
    "Description": "Description",
    "Author": "Author",
    "Text Domain": "Text Domain",
    "Capabilities": "Capabilities",
}

# Headers are only honoured in the first 8 KiB, as WordPress does.
_HEADER_BYTES = 8192

_HEADER_RE = {
    key: re.compile(rf"^[ \t/*#@]*{re.escape(key)}:(.*)$", re.MULTILINE | re.IGNORECASE)
    for key in HEADER_FIELDS
}

_HOOK_CALL_RE = re.compile(r"\badd_(?:action|filter)\s*\(")
_STRING_LITERAL_RE = re.compile(r"""^(['"])([^'"]+)\1$""")
_CLOSURE_RE = re.compile(r"^(?:static\s+)?(?:function|fn)\b")
_PRIORITY_RE = re.compile(
    r"^(?P<base>PHP_INT_MAX|PHP_INT_MIN|-?\d+)(?:\s*(?P<op>[+-])\s*(?P<offset>\d+))?$"
)
_PRIORITY_CONSTANTS = {"PHP_INT_MAX": PHP_INT_MAX, "PHP_INT_MIN": PHP_INT_MIN}
_FUNCTION_RE = re.compile(r"^function\s+&?\s*([A-Za-z_\x7f-\xff][\w\x7f-\xff]*)\s*\(", re.MULTILINE)
_GUARDED_FUNCTION_RE = re.compile(r"function_exists\s*\(\s*['\"]([\w\x7f-\xff]+)['\"]")
_GLOBAL_RE = re.compile(r"\bglobal\s+([^;]+);")
_VARIABLE_RE = re.compile(r"\$([A-Za-z_\x7f-\xff][\w\x7f-\xff]*)")
_CREATE_TABLE_RE = re.compile(
    r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?[`'\"]?([A-Za-z0-9_]+)[`'\"]?",
    re.IGNORECASE,
)
_PREFIXED_TABLE_RE = re.compile(r"\$wpdb->prefix\s*\.\s*['\"]([A-Za-z0-9_]+)['\"]")
_CALLBACK_NAME_RE = re.compile(r"['\"]([^'\"]+)['\"]")
_FUNCTION_KEYWORD_RE = re.compile(r"function\s+", re.IGNORECASE)
_CLASS_KEYWORD_RE = re.compile(r"class\s+", re.IGNORECASE)


def parse_headers(text: str) -> dict[str, str]:
    """Extract plugin header fields from the start of a source file."""
    headers: dict[str, str] = {}
    head = text[:_HEADER_BYTES]
    for key, pattern in _HEADER_RE.items():
        match = pattern.search(head)
        if match:
            value = match.group(1).strip().rstrip("*/").strip()
            if value:
                headers[key] = value
    return headers


def parse_priority(raw: Optional[str]) -> object:
    """Map a PHP priority expression to an int; unknown expressions pass through.

    Integer literals, ``PHP_INT_MAX`` / ``PHP_INT_MIN`` and one ``+`` or ``-``
    offset on either (``PHP_INT_MAX - 1``) are understood.
    """
    if raw is None:
        return 10
    raw = raw.strip()
    match = _PRIORITY_RE.match(raw)
    if not match:
        return raw
    value = _priority_term(match.group("base"))
    if match.group("op"):
        offset = int(match.group("offset"))
        value = value + offset if match.group("op") == "+" else value - offset
    return value


def _priority_term(token: str) -> int:
    if token in _PRIORITY_CONSTANTS:
        return _PRIORITY_CONSTANTS[token]
    return int(token)


def callback_identity(raw: str) -> str:
    """Reduce a callback expression to a comparable name.

    ``'my_func'`` -> ``my_func``; ``array( $this, 'init' )`` -> ``init``;
    closures keep a generic marker.
    """
    raw = raw.strip()
    if _CLOSURE_RE.match(raw):
        return "<closure>"
    names = _CALLBACK_NAME_RE.findall(raw)
    if names:
        return names[-1]
    return raw


def call_arguments(text: str, start: int) -> Optional[list[str]]:
    """Top-level arguments of a call whose ``(`` ends just before ``start``.

    Nested brackets, closure bodies and quoted strings are skipped, so a
    comma or ``)`` inside them does not split the list. None when the call
    is never closed.
    """
    args: list[str] = []
    depth = 0
    quote: Optional[str] = None
    arg_start = start
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                if ch != ")":
                    return None
                last = text[arg_start:i].strip()
                if last or args:
                    args.append(last)
                return args
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(text[arg_start:i].strip())
            arg_start = i + 1
        i += 1
    return None


def extract_hooks(text: str, skipped: Optional[list[int]] = None) -> list[dict[str, object]]:
    """Literal ``add_action`` / ``add_filter`` registrations in ``text``.

    Calls whose hook name is not a string literal (built at runtime) or whose
    argument list cannot be split are left out; their line numbers are
    appended to ``skipped`` when given.
    """
    hooks = []
    for match in _HOOK_CALL_RE.finditer(text):
        args = call_arguments(text, match.end())
        hook = _STRING_LITERAL_RE.match(args[0]) if args else None
        if hook is None or len(args) < 2:
            if skipped is not None:
                skipped.append(text.count("\n", 0, match.start()) + 1)
            continue
        hooks.append(
            {
                "hook": hook.group(2),
                "callback": callback_identity(args[1]),
                "priority": parse_priority(args[2] if len(args) > 2 else None),
            }
        )
    return hooks


def extract_functions(text: str) -> list[str]:
    """Top-level function definitions not wrapped in a ``function_exists`` guard."""
    guarded = set(_GUARDED_FUNCTION_RE.findall(text))
    return [name for name in _FUNCTION_RE.findall(text) if name not in guarded]


def extract_globals(text: str) -> list[str]:
    names: list[str] = []
    for declaration in _GLOBAL_RE.findall(text):
        names.extend(_VARIABLE_RE.findall(declaration))
    return names


def extract_tables(text: str) -> list[str]:
    return _CREATE_TABLE_RE.findall(text) + _PREFIXED_TABLE_RE.findall(text)


def _dedupe(items: list) -> tuple:
    return tuple(dict.fromkeys(items))


class DirectoryRegistry:
    """Registry backed by a plugins directory on disk."""

    def __init__(
        self,
        root: str | Path,
        active: Optional[list[str]] = None,
        max_files_per_plugin: int = 500,
        source_suffix: str = ".php",
    ):
        self.root = Path(root)
        self.max_files_per_plugin = max_files_per_plugin
        self.source_suffix = source_suffix
        self._active = set(active) if active is not None else None

    # ── Registry contract ─────────────────────────────────────

    def list_installed(self) -> list[RawExtensionMetadata]:
        try:
            entries = sorted(self.root.iterdir())
        except OSError as e:
            raise ScanError(
                f"Cannot read plugins directory: {self.root}",
                context={"path": str(self.root), "reason": str(e)},
            ) from e

        results = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                results.append(self._read_directory_plugin(entry))
            elif entry.suffix == self.source_suffix:
                meta = self._read_single_file_plugin(entry)
                if meta is not None:
                    results.append(meta)

        logger.info(f"Registry listed {len(results)} extensions under {self.root}")
        return results

    def is_active(self, plugin_id: str) -> bool:
        active = self._active_set()
        if active is None:
            return True
        return plugin_id in active

    # ── Activation list ───────────────────────────────────────

    def _active_set(self) -> Optional[set[str]]:
        if self._active is not None:
            return self._active
        path = self.root / ACTIVE_LIST_NAME
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {path}: {e}")
            return None
        if not isinstance(data, list):
            logger.warning(f"Ignoring {path}: expected a JSON list")
            return None
        # Entries may be "slug" or "slug/main-file.php"
        self._active = {str(item).split("/", 1)[0].removesuffix(self.source_suffix) for item in data}
        return self._active

    # ── Readers ───────────────────────────────────────────────

    def _read_directory_plugin(self, directory: Path) -> RawExtensionMetadata:
        errors: list[str] = []
        sources: list[Path] = []
        assets = {".css": 0, ".js": 0}
        size = 0
        mtime = 0.0

        for path in sorted(directory.rglob("*")):
            if not path.is_file():
                continue
            try:
                stat = path.stat()
            except OSError as e:
                errors.append(f"cannot stat {path.name}: {e}")
                continue
            size += stat.st_size
            mtime = max(mtime, stat.st_mtime)
            if path.suffix in assets:
                assets[path.suffix] += 1
            if path.suffix == self.source_suffix and len(sources) < self.max_files_per_plugin:
                sources.append(path)

        headers: dict[str, str] = {}
        main_file = directory
        digest = _SourceDigest()

        for path in sources:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                errors.append(f"cannot read {path.name}: {e}")
                continue
            if not headers and path.parent == directory:
                found = parse_headers(text)
                if "Plugin Name" in found:
                    headers = found
                    main_file = path
            digest.add(text, path.relative_to(directory).as_posix())

        if not headers:
            errors.append("no plugin header found")

        return digest.metadata(
            slug=directory.name,
            file_path=str(main_file),
            headers=headers,
            size_bytes=size,
            last_modified=mtime,
            errors=errors,
            css_files=assets[".css"],
            js_files=assets[".js"],
        )

    def _read_single_file_plugin(self, path: Path) -> Optional[RawExtensionMetadata]:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
            stat = path.stat()
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            return None
        headers = parse_headers(text)
        if "Plugin Name" not in headers:
            return None
        digest = _SourceDigest()
        digest.add(text, path.name)
        return digest.metadata(
            slug=path.stem,
            file_path=str(path),
            headers=headers,
            size_bytes=stat.st_size,
            last_modified=stat.st_mtime,
            errors=[],
        )


class _SourceDigest:
    """Accumulates everything extracted from one plugin's source files."""

    def __init__(self) -> None:
        self.hooks: list[dict[str, object]] = []
        self.functions: list[str] = []
        self.globals: list[str] = []
        self.tables: list[str] = []
        self.skipped_hooks: list[str] = []
        self.security_issues: list[dict[str, object]] = []
        self.source_lines = 0
        self.function_count = 0
        self.class_count = 0

    def add(self, text: str, file_name: str) -> None:
        skipped: list[int] = []
        self.hooks.extend(extract_hooks(text, skipped))
        self.skipped_hooks.extend(f"{file_name}:{line}" for line in skipped)
        self.functions.extend(extract_functions(text))
        self.globals.extend(extract_globals(text))
        self.tables.extend(extract_tables(text))
        self.security_issues.extend(scan_source(text, file_name))
        self.source_lines += text.count("\n")
        self.function_count += len(_FUNCTION_KEYWORD_RE.findall(text))
        self.class_count += len(_CLASS_KEYWORD_RE.findall(text))

    def metadata(
        self,
        slug: str,
        file_path: str,
        headers: dict[str, str],
        size_bytes: int,
        last_modified: float,
        errors: list[str],
        css_files: int = 0,
        js_files: int = 0,
    ) -> RawExtensionMetadata:
        errors = list(errors) + [
            f"hook registration at {location} not understood, skipped"
            for location in self.skipped_hooks
        ]
        return RawExtensionMetadata(
            slug=slug,
            file_path=file_path,
            headers=headers,
            hooks=tuple(self.hooks),
            functions=_dedupe(self.functions),
            globals=_dedupe(self.globals),
            tables=_dedupe(self.tables),
            size_bytes=size_bytes,
            last_modified=last_modified,
            read_errors=tuple(errors),
            metrics={
                "source_lines": self.source_lines,
                "function_count": self.function_count,
                "class_count": self.class_count,
                "css_files": css_files,
                "js_files": js_files,
                "security_issues": list(self.security_issues),
            },
        )
