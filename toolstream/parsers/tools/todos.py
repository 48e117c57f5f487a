"""TodoRead and TodoWrite decoders.

Todo payloads arrive in many shapes: a bare list, an object with ``todos`` or
``items``, JSON serialized into a string, or markdown checklists. Every shape
is normalized to :class:`~toolstream.models.TodoItem` with canonical status
and priority values.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from toolstream.models import (
    TodoChange,
    TodoItem,
    TodoPriorityCounts,
    TodoReadInput,
    TodoReadRecord,
    TodoReadResults,
    TodoStatusCounts,
    TodoUi,
    TodoWriteInput,
    TodoWriteRecord,
    TodoWriteResults,
    ToolUseBlock,
)
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.helpers import first_str, maybe_json, optional_int
from toolstream.parsers.status import normalize_todo_priority, normalize_todo_status

_CHECKBOX_PATTERN = re.compile(r"^\s*[-*+]\s*\[([ xX~\-])\]\s*(.+?)\s*$")
_NUMBERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$")
_PRIORITY_SUFFIX_PATTERN = re.compile(r"\s*\(\s*priority\s*:\s*([A-Za-z0-9]+)\s*\)\s*$", re.IGNORECASE)
_PRIORITY_PREFIX_PATTERN = re.compile(r"^\[(HIGH|MEDIUM|LOW|URGENT|CRITICAL)\]\s*", re.IGNORECASE)
_STATUS_SUFFIX_PATTERN = re.compile(r"\s*\(\s*(?:status\s*:\s*)?(pending|in[ _-]?progress|completed|done)\s*\)\s*$", re.IGNORECASE)

_CHECKBOX_STATUS = {" ": "pending", "x": "completed", "X": "completed", "~": "in_progress", "-": "in_progress"}


def _optional_text(item: dict[str, Any], *keys: str) -> Optional[str]:
    value = first_str(item, *keys)
    return value or None


def normalize_todo(item: Any, index: int) -> Optional[TodoItem]:
    """Build a :class:`TodoItem` from one raw todo; returns ``None`` for unusable values."""
    if isinstance(item, str):
        text = item.strip()
        if not text:
            return None
        return TodoItem(id=f"todo-{index + 1}", content=text)
    if not isinstance(item, dict):
        return None

    raw_id = item.get("id")
    if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) and str(raw_id).strip():
        todo_id = str(raw_id).strip()
    else:
        todo_id = f"todo-{index + 1}"

    completed_at = item.get("completedAt", item.get("completed"))
    tags = item.get("tags")
    return TodoItem(
        id=todo_id,
        content=first_str(item, "content", "text", "task", "title"),
        status=normalize_todo_status(item.get("status", item.get("state"))),
        priority=normalize_todo_priority(item.get("priority")),
        createdAt=_optional_text(item, "createdAt", "created"),
        updatedAt=_optional_text(item, "updatedAt", "updated"),
        completedAt=completed_at if isinstance(completed_at, str) and completed_at else None,
        tags=[tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else [],
    )


def parse_markdown_todos(text: str) -> list[TodoItem]:
    """Parse ``- [ ] task`` checklists and ``1. task`` numbered lists."""
    todos: list[TodoItem] = []
    for line in text.splitlines():
        status = "pending"
        checkbox = _CHECKBOX_PATTERN.match(line)
        if checkbox:
            status = _CHECKBOX_STATUS[checkbox.group(1)]
            body = checkbox.group(2)
        else:
            numbered = _NUMBERED_PATTERN.match(line)
            if not numbered:
                continue
            body = numbered.group(1)

        priority = "medium"
        prefix = _PRIORITY_PREFIX_PATTERN.match(body)
        if prefix:
            priority = normalize_todo_priority(prefix.group(1))
            body = body[prefix.end():]
        suffix = _PRIORITY_SUFFIX_PATTERN.search(body)
        if suffix:
            priority = normalize_todo_priority(suffix.group(1))
            body = body[: suffix.start()]
        if not checkbox:
            status_suffix = _STATUS_SUFFIX_PATTERN.search(body)
            if status_suffix:
                status = normalize_todo_status(status_suffix.group(1))
                body = body[: status_suffix.start()]

        body = body.strip()
        if body:
            todos.append(TodoItem(id=f"todo-{len(todos) + 1}", content=body, status=status, priority=priority))
    return todos


def _raw_todo_list(value: Any) -> Optional[list[Any]]:
    value = maybe_json(value)
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in ("todos", "items", "newTodos"):
            listed = value.get(key)
            if isinstance(listed, list):
                return listed
    return None


def extract_todos(payload: Any, raw: Any = None) -> list[TodoItem]:
    """Normalize todos from whichever of ``raw`` or ``payload`` carries them."""
    for candidate in (raw, payload):
        items = _raw_todo_list(candidate)
        if items is not None:
            return normalize_todos(items)
    if isinstance(payload, str):
        return parse_markdown_todos(payload)
    return []


def normalize_todos(items: list[Any]) -> list[TodoItem]:
    todos: list[TodoItem] = []
    for index, item in enumerate(items):
        todo = normalize_todo(item, index)
        if todo is not None:
            todos.append(todo)
    return todos


def status_counts(todos: list[TodoItem]) -> TodoStatusCounts:
    counts = TodoStatusCounts()
    for todo in todos:
        setattr(counts, todo.status, getattr(counts, todo.status) + 1)
    return counts


def priority_counts(todos: list[TodoItem]) -> TodoPriorityCounts:
    counts = TodoPriorityCounts()
    for todo in todos:
        setattr(counts, todo.priority, getattr(counts, todo.priority) + 1)
    return counts


def _todo_key(todo: TodoItem) -> str:
    return todo.id if not todo.id.startswith("todo-") else f"content:{todo.content}"


def diff_todos(old: list[TodoItem], new: list[TodoItem]) -> list[TodoChange]:
    """Changes between two todo lists, matched by id (or content for generated ids)."""
    old_by_key = {_todo_key(todo): todo for todo in old}
    new_keys: set[str] = set()
    changes: list[TodoChange] = []
    for todo in new:
        key = _todo_key(todo)
        new_keys.add(key)
        previous = old_by_key.get(key)
        if previous is None:
            changes.append(TodoChange(type="add", todoId=todo.id, newValue=todo))
        elif previous.model_dump() != todo.model_dump():
            changes.append(TodoChange(type="update", todoId=todo.id, oldValue=previous, newValue=todo))
    for key, todo in old_by_key.items():
        if key not in new_keys:
            changes.append(TodoChange(type="delete", todoId=todo.id, oldValue=todo))
    return changes


def _todo_ui(todos: list[TodoItem]) -> TodoUi:
    counts = status_counts(todos)
    return TodoUi(
        totalTodos=len(todos),
        completedTodos=counts.completed,
        pendingTodos=counts.pending,
        inProgressTodos=counts.in_progress,
    )


class TodoReadDecoder(BaseToolDecoder):
    tool_names = ("TodoRead",)
    tool_type = "todo_read"
    record_class = TodoReadRecord
    description = "Todo list snapshots with status and priority counts"
    features = ("status-mapping", "correlation", "markdown-todos")

    def parse_input(self, params: dict[str, Any]) -> TodoReadInput:
        return TodoReadInput()

    def empty_results(self) -> TodoReadResults:
        return TodoReadResults()

    def parse_results(self, payload: Any, raw: Any, params: TodoReadInput) -> TodoReadResults:
        todos = extract_todos(payload, raw)
        return TodoReadResults(
            todos=todos,
            statusCounts=status_counts(todos),
            priorityCounts=priority_counts(todos),
        )

    def build_ui(self, tool_use: ToolUseBlock, params: TodoReadInput, results: TodoReadResults, duration: Optional[int]) -> TodoUi:
        return _todo_ui(results.todos)


class TodoWriteDecoder(BaseToolDecoder):
    tool_names = ("TodoWrite",)
    tool_type = "todo_write"
    record_class = TodoWriteRecord
    description = "Todo list updates with change tracking"
    features = ("status-mapping", "correlation", "change-tracking")

    def parse_input(self, params: dict[str, Any]) -> TodoWriteInput:
        items = _raw_todo_list(params.get("todos"))
        return TodoWriteInput(todos=normalize_todos(items or []))

    def empty_results(self) -> TodoWriteResults:
        return TodoWriteResults()

    def parse_results(self, payload: Any, raw: Any, params: TodoWriteInput) -> TodoWriteResults:
        data = maybe_json(payload)
        message = payload if isinstance(payload, str) and not isinstance(data, (dict, list)) else None
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            message = data["message"]

        if isinstance(raw, dict) and isinstance(raw.get("oldTodos"), list) and isinstance(raw.get("newTodos"), list):
            old = normalize_todos(raw["oldTodos"])
            new = normalize_todos(raw["newTodos"])
            changes = diff_todos(old, new)
            if not new:
                operation = "clear"
            elif not old:
                operation = "create"
            elif any(change.type == "update" for change in changes) and not any(change.type == "delete" for change in changes):
                operation = "update"
            else:
                operation = "replace"
            return self._results(operation, changes, message)

        todos = params.todos
        if not todos:
            return self._results("clear", [], message)

        counts = data if isinstance(data, dict) else {}
        added = optional_int(counts.get("addedCount", counts.get("added")))
        updated = optional_int(counts.get("updatedCount", counts.get("updated")))
        removed = optional_int(counts.get("removedCount", counts.get("removed")))
        if added is not None or updated is not None or removed is not None:
            added, updated, removed = added or 0, updated or 0, removed or 0
            changes = [TodoChange(type="add", todoId=todo.id, newValue=todo) for todo in todos[:added]]
            changes += [TodoChange(type="update", todoId=todo.id, newValue=todo) for todo in todos[added: added + updated]]
            changes += [TodoChange(type="delete", todoId=f"removed-{index + 1}") for index in range(removed)]
            operation = "update" if updated and not added and not removed else "create" if added == len(todos) and not removed else "replace"
            return self._results(operation, changes, message)

        changes = [TodoChange(type="add", todoId=todo.id, newValue=todo) for todo in todos]
        return self._results(self._infer_operation(todos), changes, message)

    @staticmethod
    def _infer_operation(todos: list[TodoItem]) -> str:
        if any(todo.updatedAt for todo in todos):
            return "update"
        if all(todo.id.startswith(("todo-", "temp-")) for todo in todos):
            return "create"
        return "replace"

    @staticmethod
    def _results(operation: str, changes: list[TodoChange], message: Optional[str]) -> TodoWriteResults:
        return TodoWriteResults(
            operation=operation,
            changes=changes,
            addedCount=sum(1 for change in changes if change.type == "add"),
            updatedCount=sum(1 for change in changes if change.type == "update"),
            removedCount=sum(1 for change in changes if change.type == "delete"),
            message=message,
        )

    def build_ui(self, tool_use: ToolUseBlock, params: TodoWriteInput, results: TodoWriteResults, duration: Optional[int]) -> TodoUi:
        return _todo_ui(params.todos)
