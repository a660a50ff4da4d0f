"""Pattern-based security review of plugin source files.

Flags calls and idioms that commonly lead to remote code execution, SQL
injection, cross-site scripting or attacker-controlled file access. This is
a static text scan: findings are leads for a human reviewer, not proof of
a vulnerability, and obfuscated code goes unnoticed.
"""

from __future__ import annotations

import re

DANGEROUS_FUNCTIONS = (
    "eval",
    "base64_decode",
    "system",
    "exec",
    "shell_exec",
    "passthru",
    "proc_open",
    "popen",
    "curl_exec",
    "curl_multi_exec",
    "parse_str",
    "file_get_contents",
    "file_put_contents",
)

_DANGEROUS_RE = {
    name: re.compile(rf"\b{re.escape(name)}\s*\(", re.IGNORECASE) for name in DANGEROUS_FUNCTIONS
}

# (issue type, severity, pattern, message)
_PATTERNS = (
    (
        "sql_injection",
        "high",
        re.compile(r"""\$wpdb->(?:query|get_results|get_row|get_var|get_col)\s*\(\s*["'].*?\$.*?["']"""),
        "Possible SQL injection: direct variable in query without prepare()",
    ),
    (
        "sql_injection",
        "critical",
        re.compile(r"\$_(?:GET|POST|REQUEST)\[.*?\].*?(?:query|SELECT|INSERT|UPDATE|DELETE)", re.IGNORECASE),
        "Critical: User input directly in SQL query",
    ),
    (
        "xss",
        "high",
        re.compile(r"echo\s+\$_(?:GET|POST|REQUEST)\["),
        "Possible XSS: unescaped user input in echo",
    ),
    (
        "file_operation",
        "high",
        re.compile(r"(?:file_get_contents|file_put_contents|fopen|unlink)\s*\(\s*\$_(?:GET|POST|REQUEST)"),
        "Insecure file operation with user input",
    ),
)


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def scan_source(text: str, file_name: str) -> list[dict[str, object]]:
    """Security findings in one source file, in file order per check.

    Each finding is a mapping with ``type``, ``severity`` ("high" or
    "critical"), ``file``, ``line``, ``message`` and, for dangerous calls,
    ``function``.
    """
    issues: list[dict[str, object]] = []

    for name, pattern in _DANGEROUS_RE.items():
        for match in pattern.finditer(text):
            issues.append(
                {
                    "type": "dangerous_function",
                    "severity": "high",
                    "function": name,
                    "file": file_name,
                    "line": _line_of(text, match.start()),
                    "message": f"Potentially dangerous function '{name}' found",
                }
            )

    for issue_type, severity, pattern, message in _PATTERNS:
        for match in pattern.finditer(text):
            issues.append(
                {
                    "type": issue_type,
                    "severity": severity,
                    "file": file_name,
                    "line": _line_of(text, match.start()),
                    "message": message,
                }
            )

    return issues

