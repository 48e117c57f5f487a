"""Project path codec and the user override table.

The agent stores each project's logs in a directory whose name is the
project's absolute path folded into a single token:

* a literal ``-`` inside a path segment is written as ``--``
* every path separator is written as ``-``
* the leading ``/`` of an absolute path becomes the leading ``-``

So ``/Users/a-b`` is stored as ``-Users-a--b`` and Windows paths such as
``C:/work/app`` as ``C--work-app``.

Decoding is lossy for legacy tokens (older agent builds also folded ``.`` and
``_`` into ``-``), which is why :class:`PathCorrections` lets a user pin the
right answer for a token.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path, PurePath
from typing import Optional

logger = logging.getLogger("toolstream.paths")

# NUL never appears in a filesystem path.
_DASH_PLACEHOLDER = "\x00DASH\x00"
_DRIVE_PATH_PATTERN = re.compile(r"^([A-Za-z]):[\\/]")
_DRIVE_TOKEN_PATTERN = re.compile(r"^([A-Za-z])--")
SESSION_CWD_SCAN_LINES = 10


def _encode_segments(path: str) -> str:
    return "-".join(segment.replace("-", "--") for segment in path.split("/"))


def _decode_segments(body: str) -> str:
    protected = body.replace("--", _DASH_PLACEHOLDER)
    return protected.replace("-", "/").replace(_DASH_PLACEHOLDER, "-")


def encode_project_path(path: str) -> str:
    """Fold a filesystem path into a directory-name-safe token."""
    if not path:
        return ""
    drive = _DRIVE_PATH_PATTERN.match(path)
    if drive:
        rest = path[drive.end():].replace("\\", "/")
        return f"{drive.group(1)}--{_encode_segments(rest)}"
    return _encode_segments(path)


def decode_project_path(token: str) -> str:
    """Reverse :func:`encode_project_path` for one token."""
    if not token:
        return ""
    if token.startswith("-"):
        return "/" + _decode_segments(token[1:])
    drive = _DRIVE_TOKEN_PATTERN.match(token)
    if drive:
        return f"{drive.group(1)}:/{_decode_segments(token[drive.end():])}"
    return _decode_segments(token)


class PathCorrections:
    """Persistent ``token -> corrected path`` overrides.

    Loaded once on construction. Every mutation rewrites the JSON file and
    only takes effect once the write succeeds.
    """

    def __init__(self, storage_path: Path):
        self.storage_path = Path(storage_path)
        self._corrections: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.storage_path.exists():
            return

        try:
            content = self.storage_path.read_text(encoding="utf-8")
            if not content.strip():
                return
            data = json.loads(content)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load path corrections from {self.storage_path}: {e}")
            return

        if not isinstance(data, dict):
            logger.error(f"Ignoring path corrections file {self.storage_path}: expected a JSON object")
            return

        for token, corrected in data.items():
            if isinstance(token, str) and isinstance(corrected, str) and token and corrected:
                self._corrections[token] = corrected
            else:
                logger.warning(f"Skipping malformed path correction for {token!r}")

    def _save(self, corrections: dict[str, str]) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(
            json.dumps(corrections, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._corrections = corrections

    def get(self, token: str) -> Optional[str]:
        return self._corrections.get(token)

    def set(self, token: str, corrected_path: str) -> None:
        token = (token or "").strip()
        corrected_path = (corrected_path or "").strip()
        if not token or not corrected_path:
            raise ValueError("Both the encoded token and the corrected path are required")
        self._save({**self._corrections, token: corrected_path})
        logger.info(f"Path correction saved: {token} -> {corrected_path}")

    def remove(self, token: str) -> bool:
        if token not in self._corrections:
            return False
        self._save({key: value for key, value in self._corrections.items() if key != token})
        logger.info(f"Path correction removed: {token}")
        return True

    def all(self) -> dict[str, str]:
        return dict(self._corrections)

    def __contains__(self, token: object) -> bool:
        return token in self._corrections

    def __len__(self) -> int:
        return len(self._corrections)


def resolve_project_path(token: str, corrections: Optional[PathCorrections] = None) -> str:
    """Decode ``token``, preferring a user correction when one exists."""
    if corrections is not None:
        override = corrections.get(token)
        if override:
            return override
    return decode_project_path(token)


def session_id_from_path(path: Path | str) -> str:
    return PurePath(path).stem


def read_session_cwd(path: Path | str, max_lines: int = SESSION_CWD_SCAN_LINES) -> Optional[str]:
    """Return the first ``cwd`` recorded in the opening lines of a session log."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for _ in range(max_lines):
                line = handle.readline()
                if not line:
                    break
                try:
                    data = json.loads(line)
                except ValueError:
                    continue
                cwd = data.get("cwd") if isinstance(data, dict) else None
                if isinstance(cwd, str) and cwd.strip():
                    return cwd.strip()
    except OSError as e:
        logger.debug(f"Could not read working directory from {path}: {e}")
    return None


def project_from_path(path: Path | str, corrections: Optional[PathCorrections] = None) -> str:
    """Project for a session file.

    A user correction wins, then the ``cwd`` the agent logged in the session,
    then the algorithmic decode of the directory token.
    """
    token = PurePath(path).parent.name
    if not token:
        return "unknown"
    if corrections is not None:
        override = corrections.get(token)
        if override:
            return override
    return read_session_cwd(path) or decode_project_path(token)
