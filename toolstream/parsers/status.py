"""Status and priority normalization shared by all decoders."""
from __future__ import annotations

import re
from typing import Any

from toolstream.models import TodoPriority, TodoStatus, ToolStatus

_INTERRUPT_MARKER = "[request interrupted by user"
_TOKEN_SEPARATORS = re.compile(r"[\s_\-]+")

_TODO_STATUS_ALIASES: dict[str, TodoStatus] = {
    "pending": "pending",
    "todo": "pending",
    "open": "pending",
    "notstarted": "pending",
    "inprogress": "in_progress",
    "active": "in_progress",
    "doing": "in_progress",
    "started": "in_progress",
    "wip": "in_progress",
    "completed": "completed",
    "complete": "completed",
    "done": "completed",
    "finished": "completed",
    "closed": "completed",
}

_PRIORITY_ALIASES: dict[str, TodoPriority] = {
    "1": "low",
    "2": "medium",
    "3": "high",
    "low": "low",
    "minor": "low",
    "trivial": "low",
    "medium": "medium",
    "med": "medium",
    "normal": "medium",
    "moderate": "medium",
    "high": "high",
    "urgent": "high",
    "critical": "high",
    "important": "high",
}


def map_from_error(
    is_error: bool = False,
    *,
    pending: bool = False,
    interrupted: bool = False,
    original: str | None = None,
) -> ToolStatus:
    if pending:
        return ToolStatus(normalized="pending", original=original or "pending")
    if is_error:
        return ToolStatus(normalized="failed", original=original or "error")
    if interrupted:
        return ToolStatus(
            normalized="interrupted",
            original=original or "interrupted",
            details={"interrupted": True},
        )
    return ToolStatus(normalized="completed", original=original or "success")


def is_interrupted(payload: Any, raw: Any = None) -> bool:
    """Whether a result payload carries an explicit interruption marker."""
    for candidate in (payload, raw):
        if isinstance(candidate, dict) and candidate.get("interrupted") is True:
            return True
        if isinstance(candidate, str) and candidate.strip().lower().startswith(_INTERRUPT_MARKER):
            return True
    return False


def original_status_token(payload: Any, raw: Any = None) -> str | None:
    for candidate in (payload, raw):
        if isinstance(candidate, dict):
            token = candidate.get("status")
            if isinstance(token, str) and token.strip():
                return token.strip()
    return None


def _compact_token(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return _TOKEN_SEPARATORS.sub("", str(value)).lower()


def normalize_todo_status(value: Any) -> TodoStatus:
    """Map any status spelling (``IN_PROGRESS``, ``in-progress``, ``done``…) to a canonical one."""
    token = _compact_token(value)
    if token in _TODO_STATUS_ALIASES:
        return _TODO_STATUS_ALIASES[token]
    if "progress" in token:
        return "in_progress"
    if token.startswith("complete"):
        return "completed"
    return "pending"


def normalize_todo_priority(value: Any) -> TodoPriority:
    """Map numeric shorthand and free text to a priority; unknown values become medium."""
    token = _compact_token(value)
    return _PRIORITY_ALIASES.get(token, "medium")
