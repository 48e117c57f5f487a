"""Small coercion helpers shared by the tool decoders."""
from __future__ import annotations

import json
from pathlib import PurePath
from typing import Any, Optional

_FILE_TYPES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".json": "json",
    ".jsonl": "json",
    ".md": "markdown",
    ".mdx": "markdown",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".ini": "ini",
    ".cfg": "ini",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".swift": "swift",
    ".sql": "sql",
    ".xml": "xml",
    ".txt": "plaintext",
}

_FILE_TYPES_BY_NAME = {
    "dockerfile": "dockerfile",
    "makefile": "makefile",
}

_ERROR_KEYS = ("error", "errorMessage", "message", "stderr")


def infer_file_type(path: str) -> str:
    if not path:
        return "plaintext"
    pure = PurePath(path)
    by_name = _FILE_TYPES_BY_NAME.get(pure.name.lower())
    if by_name:
        return by_name
    return _FILE_TYPES.get(pure.suffix.lower(), "plaintext")


def first_str(params: dict[str, Any], *keys: str, default: str = "") -> str:
    """Return the first non-empty string stored under any of ``keys``."""
    for key in keys:
        value = params.get(key)
        if isinstance(value, str) and value:
            return value
    return default


def optional_str(params: dict[str, Any], *keys: str) -> Optional[str]:
    value = first_str(params, *keys)
    return value or None


def coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_text(value: Any) -> str:
    """Render a payload as text; structured values become JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def count_lines(text: str) -> int:
    if not text:
        return 0
    return len(text.splitlines())


def maybe_json(text: Any) -> Any:
    """Parse ``text`` as JSON when it looks like an object or array."""
    if not isinstance(text, str):
        return text
    stripped = text.strip()
    if not stripped or stripped[0] not in "[{":
        return text
    try:
        return json.loads(stripped)
    except ValueError:
        return text


def extract_error_message(payload: Any, raw: Any, default: str) -> str:
    if isinstance(payload, str) and payload:
        return payload
    for candidate in (payload, raw):
        if isinstance(candidate, dict):
            for key in _ERROR_KEYS:
                value = candidate.get(key)
                if isinstance(value, str) and value.strip():
                    return value
    if isinstance(raw, str) and raw:
        return raw
    return default
