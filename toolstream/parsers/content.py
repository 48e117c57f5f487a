"""Guarded accessors for the loosely-typed ``content`` of a log entry."""
from __future__ import annotations

from typing import Any, Callable, Optional

from toolstream.models import RawEntry, ToolResultBlock, ToolUseBlock


def normalize_content(content: Any) -> list[dict[str, Any]]:
    """Return the entry content as a list of block dicts.

    A plain string becomes a single text block; non-dict list items are dropped.
    """
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if isinstance(content, dict):
        return [content]
    if isinstance(content, list):
        return [block for block in content if isinstance(block, dict)]
    return []


def flatten_text_blocks(value: Any) -> Any:
    """Collapse a list of text blocks into one string; anything else passes through."""
    if not isinstance(value, list) or not value:
        return value
    texts: list[str] = []
    for block in value:
        if isinstance(block, str):
            texts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
            texts.append(block["text"])
        else:
            return value
    return "\n".join(texts)


def find_tool_use(
    entry: RawEntry,
    name_filter: Optional[Callable[[str], bool]] = None,
) -> Optional[ToolUseBlock]:
    for block in normalize_content(entry.content):
        if block.get("type") != "tool_use":
            continue
        name = block.get("name")
        if not isinstance(name, str) or not name:
            continue
        if name_filter is not None and not name_filter(name):
            continue
        raw_input = block.get("input")
        tool_id = block.get("id")
        return ToolUseBlock(
            id=tool_id if isinstance(tool_id, str) else "",
            name=name,
            input=raw_input if isinstance(raw_input, dict) else {},
        )
    return None


def find_tool_result(entry: RawEntry, tool_use_id: Optional[str] = None) -> Optional[ToolResultBlock]:
    for block in normalize_content(entry.content):
        if block.get("type") != "tool_result":
            continue
        block_id = block.get("tool_use_id")
        block_id = block_id if isinstance(block_id, str) else ""
        if tool_use_id is not None and block_id != tool_use_id:
            continue
        payload = block["output"] if "output" in block else block.get("content")
        return ToolResultBlock(
            toolUseId=block_id,
            payload=flatten_text_blocks(payload),
            isError=block.get("is_error") is True,
        )
    return None


def tool_name_of(entry: RawEntry) -> Optional[str]:
    tool_use = find_tool_use(entry)
    return tool_use.name if tool_use else None
