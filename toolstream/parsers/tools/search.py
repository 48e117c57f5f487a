"""Decoders for the search and listing tools: Grep, Glob and LS."""
from __future__ import annotations

import logging
import re
from typing import Any, Optional

from toolstream.models import (
    FileEntry,
    GlobInput,
    GlobRecord,
    GlobResults,
    GrepInput,
    GrepRecord,
    GrepResults,
    LsInput,
    LsRecord,
    LsResults,
    LsUi,
    SearchMatch,
    SearchResult,
    SearchUi,
    ToolUseBlock,
)
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.helpers import first_str, optional_int, optional_str

logger = logging.getLogger("toolstream.decoders")

_MATCH_LINE_PATTERN = re.compile(r"^(.+?):(\d+):(.*)$")
_TREE_LINE_PATTERN = re.compile(r"^(\s*)- (.+?)\s*$")
_NO_FILES_MARKERS = ("no files found", "no matches found")


def parse_search_lines(text: str) -> list[SearchResult]:
    """Group ``path:line:content`` lines by file, in order of first appearance.

    Output in any other shape yields an empty list; nothing is guessed.
    """
    grouped: dict[str, list[SearchMatch]] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        match = _MATCH_LINE_PATTERN.match(line)
        if not match:
            logger.debug("Grep output is not in path:line:content form; skipping match extraction")
            return []
        file_path, line_number, content = match.groups()
        grouped.setdefault(file_path, []).append(SearchMatch(lineNumber=int(line_number), lineContent=content))
    return [
        SearchResult(filePath=file_path, matches=matches, matchCount=len(matches))
        for file_path, matches in grouped.items()
    ]


def _search_text(payload: Any, raw: Any) -> str:
    if isinstance(payload, str):
        return payload
    for candidate in (payload, raw):
        if isinstance(candidate, dict):
            for key in ("content", "output"):
                value = candidate.get(key)
                if isinstance(value, str):
                    return value
    return ""


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str) and item]
    return []


class GrepDecoder(BaseToolDecoder):
    tool_names = ("Grep",)
    tool_type = "grep"
    record_class = GrepRecord
    description = "Content search grouped by file"

    def parse_input(self, params: dict[str, Any]) -> GrepInput:
        case_insensitive = params.get("-i") is True or params.get("case_insensitive") is True
        return GrepInput(
            pattern=first_str(params, "pattern"),
            searchPath=optional_str(params, "path"),
            filePatterns=_string_list(params.get("include", params.get("glob"))),
            caseSensitive=not case_insensitive,
            outputMode=optional_str(params, "output_mode", "outputMode"),
        )

    def empty_results(self) -> GrepResults:
        return GrepResults()

    def parse_results(self, payload: Any, raw: Any, params: GrepInput) -> GrepResults:
        return GrepResults(matches=parse_search_lines(_search_text(payload, raw)))

    def build_ui(self, tool_use: ToolUseBlock, params: GrepInput, results: GrepResults, duration: Optional[int]) -> SearchUi:
        return SearchUi(
            totalMatches=sum(group.matchCount for group in results.matches),
            filesWithMatches=len(results.matches),
            searchTime=duration,
        )


class GlobDecoder(BaseToolDecoder):
    tool_names = ("Glob",)
    tool_type = "glob"
    record_class = GlobRecord
    description = "File name pattern matches"

    def parse_input(self, params: dict[str, Any]) -> GlobInput:
        return GlobInput(pattern=first_str(params, "pattern"), searchPath=optional_str(params, "path"))

    def empty_results(self) -> GlobResults:
        return GlobResults()

    def parse_results(self, payload: Any, raw: Any, params: GlobInput) -> GlobResults:
        if isinstance(raw, dict) and isinstance(raw.get("filenames"), list):
            return GlobResults(files=_string_list(raw["filenames"]))
        if isinstance(payload, list):
            return GlobResults(files=_string_list(payload))

        files: list[str] = []
        for line in _search_text(payload, raw).splitlines():
            line = line.strip()
            if not line or line.startswith("("):
                continue
            if line.lower() in _NO_FILES_MARKERS:
                continue
            files.append(line)
        return GlobResults(files=files)

    def build_ui(self, tool_use: ToolUseBlock, params: GlobInput, results: GlobResults, duration: Optional[int]) -> SearchUi:
        return SearchUi(totalMatches=len(results.files), filesWithMatches=len(results.files), searchTime=duration)


def _entry_from_dict(item: dict[str, Any], base_path: str) -> Optional[FileEntry]:
    name = first_str(item, "name")
    path = first_str(item, "path")
    if not name and path:
        name = path.rstrip("/").rsplit("/", 1)[-1]
    if not name:
        return None
    kind = item.get("type")
    if kind in ("dir", "folder"):
        kind = "directory"
    if kind not in ("file", "directory", "symlink"):
        kind = "directory" if item.get("isDirectory") is True else "file"
    modified = item.get("lastModified", item.get("modified"))
    permissions = item.get("permissions")
    return FileEntry(
        name=name,
        path=path or f"{base_path.rstrip('/')}/{name}",
        type=kind,
        size=optional_int(item.get("size")),
        permissions=permissions if isinstance(permissions, str) else None,
        lastModified=modified if isinstance(modified, str) else None,
        isHidden=name.startswith("."),
    )


def parse_tree_listing(text: str, base_path: str = "") -> list[FileEntry]:
    """Parse the indented ``- name`` tree the LS tool prints.

    The root line (the listed directory itself) is not reported as an entry.
    Lines past the first blank line are trailing notes and are ignored.
    """
    entries: list[FileEntry] = []
    stack: list[tuple[int, str]] = []
    root_indent: Optional[int] = None
    for line in text.splitlines():
        if not line.strip():
            if entries or stack:
                break
            continue
        match = _TREE_LINE_PATTERN.match(line)
        if not match:
            continue
        indent = len(match.group(1))
        label = match.group(2)
        is_dir = label.endswith("/")
        name = label.rstrip("/")

        if root_indent is None:
            root_indent = indent
            if name.startswith("/") or (base_path and name == base_path.rstrip("/")):
                stack.append((indent, name))
                continue

        while stack and stack[-1][0] >= indent:
            stack.pop()
        parent = stack[-1][1] if stack else base_path.rstrip("/")
        path = f"{parent}/{name}" if parent else name
        entries.append(
            FileEntry(
                name=name,
                path=path,
                type="directory" if is_dir else "file",
                isHidden=name.startswith("."),
            )
        )
        if is_dir:
            stack.append((indent, path))
    return entries


class LsDecoder(BaseToolDecoder):
    tool_names = ("LS",)
    tool_type = "ls"
    record_class = LsRecord
    description = "Directory listings from structured entries or a tree listing"

    def parse_input(self, params: dict[str, Any]) -> LsInput:
        return LsInput(path=first_str(params, "path"), ignore=_string_list(params.get("ignore")))

    def empty_results(self) -> LsResults:
        return LsResults()

    def parse_results(self, payload: Any, raw: Any, params: LsInput) -> LsResults:
        items: Optional[list[Any]] = None
        for candidate in (payload, raw):
            if isinstance(candidate, list):
                items = candidate
                break
            if isinstance(candidate, dict):
                listed = candidate.get("entries", candidate.get("files"))
                if isinstance(listed, list):
                    items = listed
                    break

        entries: list[FileEntry] = []
        if items is not None:
            for item in items:
                if isinstance(item, dict):
                    entry = _entry_from_dict(item, params.path)
                elif isinstance(item, str) and item.strip():
                    entry = _entry_from_dict({"name": item.strip().rstrip("/"), "type": "directory" if item.endswith("/") else "file"}, params.path)
                else:
                    entry = None
                if entry is not None:
                    entries.append(entry)
        else:
            entries = parse_tree_listing(_search_text(payload, raw), params.path)

        return LsResults(
            entries=entries,
            entryCount=len(entries),
            totalSize=sum(entry.size or 0 for entry in entries),
        )

    def build_ui(self, tool_use: ToolUseBlock, params: LsInput, results: LsResults, duration: Optional[int]) -> LsUi:
        return LsUi(
            totalFiles=sum(1 for entry in results.entries if entry.type == "file"),
            totalDirectories=sum(1 for entry in results.entries if entry.type == "directory"),
            totalSize=results.totalSize,
        )
