"""Pydantic models for log entries, sessions, engine events and tool records."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# ── Raw log entries ─────────────────────────────────────────────────


class RawEntry(BaseModel):
    """One line of a session log after normalization.

    ``content`` stays loosely typed: a plain string, one block dict, or a list
    of block dicts. Decoders read it through the guarded helpers in
    ``toolstream.parsers.content``.
    """

    uuid: str
    parentUuid: Optional[str] = None
    timestamp: str = ""
    type: Literal["user", "assistant"]
    isSidechain: bool = False
    content: Any = None
    toolUseResult: Any = None
    cwd: Optional[str] = None
    sessionId: Optional[str] = None


class ToolUseBlock(BaseModel):
    id: str = ""
    name: str = ""
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    toolUseId: str = ""
    payload: Any = None
    isError: bool = False


# ── Sessions ────────────────────────────────────────────────────────


class SessionInfo(BaseModel):
    sessionId: str
    project: str
    filePath: str
    lastModified: datetime
    firstSeen: datetime
    size: int = 0


class ActiveSession(BaseModel):
    sessionId: str
    project: str
    filePath: str
    lastModified: datetime
    isActive: bool = False


# ── Tool record building blocks ─────────────────────────────────────

ToolStatusValue = Literal["pending", "completed", "failed", "interrupted"]
TodoStatus = Literal["pending", "in_progress", "completed"]
TodoPriority = Literal["high", "medium", "low"]


class RecordPart(BaseModel):
    """Frozen base for everything nested inside a tool record.

    Attribute assignment is rejected at every level. List and dict contents
    are not deep-frozen; consumers treat emitted records as read-only.
    """

    model_config = ConfigDict(frozen=True)


class ToolStatus(RecordPart):
    normalized: ToolStatusValue = "pending"
    original: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class TodoItem(RecordPart):
    id: str
    content: str = ""
    status: TodoStatus = "pending"
    priority: TodoPriority = "medium"
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    completedAt: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class TodoChange(RecordPart):
    type: Literal["add", "update", "delete"]
    todoId: str
    oldValue: Optional[TodoItem] = None
    newValue: Optional[TodoItem] = None


class TodoStatusCounts(RecordPart):
    pending: int = 0
    in_progress: int = 0
    completed: int = 0


class TodoPriorityCounts(RecordPart):
    high: int = 0
    medium: int = 0
    low: int = 0


class DiffLine(RecordPart):
    type: Literal["added", "removed", "unchanged"]
    content: str = ""
    oldLineNumber: Optional[int] = None
    newLineNumber: Optional[int] = None


class EditOperation(RecordPart):
    oldString: str = ""
    newString: str = ""
    replaceAll: bool = False


class EditDetail(RecordPart):
    index: int
    operation: EditOperation
    success: bool = True
    replacementsMade: int = 0
    error: Optional[str] = None


class SearchMatch(RecordPart):
    lineNumber: int
    lineContent: str = ""


class SearchResult(RecordPart):
    filePath: str
    matches: list[SearchMatch] = Field(default_factory=list)
    matchCount: int = 0


class FileEntry(RecordPart):
    name: str
    path: str = ""
    type: Literal["file", "directory", "symlink"] = "file"
    size: Optional[int] = None
    permissions: Optional[str] = None
    lastModified: Optional[str] = None
    isHidden: bool = False


# ── Tool records ────────────────────────────────────────────────────


class ToolRecord(RecordPart):
    """Fields shared by every normalized tool record."""

    toolType: str
    toolName: str
    id: str
    uuid: str
    parentUuid: Optional[str] = None
    timestamp: str = ""
    duration: Optional[int] = None
    status: ToolStatus = Field(default_factory=ToolStatus)


class BashInput(RecordPart):
    command: str = ""
    description: Optional[str] = None
    timeout: Optional[int] = None
    workingDirectory: Optional[str] = None


class BashResults(RecordPart):
    output: str = ""
    errorOutput: str = ""
    exitCode: Optional[int] = None
    interrupted: bool = False
    errorMessage: Optional[str] = None


class BashUi(RecordPart):
    promptText: Optional[str] = None
    outputLines: int = 0
    showCopyButton: bool = True


class BashRecord(ToolRecord):
    toolType: Literal["bash"] = "bash"
    input: BashInput = Field(default_factory=BashInput)
    results: BashResults = Field(default_factory=BashResults)
    ui: BashUi = Field(default_factory=BashUi)


class ReadInput(RecordPart):
    filePath: str = ""
    offset: Optional[int] = None
    limit: Optional[int] = None


class ReadResults(RecordPart):
    content: str = ""
    totalLines: int = 0
    fileSize: int = 0
    truncated: bool = False
    errorMessage: Optional[str] = None


class FileUi(RecordPart):
    fileType: str = "plaintext"
    lineCount: int = 0
    showLineNumbers: bool = True


class ReadRecord(ToolRecord):
    toolType: Literal["read"] = "read"
    input: ReadInput = Field(default_factory=ReadInput)
    results: ReadResults = Field(default_factory=ReadResults)
    ui: FileUi = Field(default_factory=FileUi)


class WriteInput(RecordPart):
    filePath: str = ""
    content: str = ""


class WriteResults(RecordPart):
    created: bool = False
    overwritten: bool = False
    message: Optional[str] = None
    errorMessage: Optional[str] = None


class WriteRecord(ToolRecord):
    toolType: Literal["write"] = "write"
    input: WriteInput = Field(default_factory=WriteInput)
    results: WriteResults = Field(default_factory=WriteResults)
    ui: FileUi = Field(default_factory=FileUi)


class EditInput(RecordPart):
    filePath: str = ""
    oldString: str = ""
    newString: str = ""
    replaceAll: bool = False


class EditResults(RecordPart):
    diff: list[DiffLine] = Field(default_factory=list)
    message: Optional[str] = None
    errorMessage: Optional[str] = None


class EditUi(RecordPart):
    fileType: str = "plaintext"
    addedLines: int = 0
    removedLines: int = 0


class EditRecord(ToolRecord):
    toolType: Literal["edit"] = "edit"
    input: EditInput = Field(default_factory=EditInput)
    results: EditResults = Field(default_factory=EditResults)
    ui: EditUi = Field(default_factory=EditUi)


class MultiEditInput(RecordPart):
    filePath: str = ""
    edits: list[EditOperation] = Field(default_factory=list)


class MultiEditResults(RecordPart):
    message: Optional[str] = None
    editsApplied: int = 0
    totalEdits: int = 0
    allSuccessful: bool = False
    editDetails: list[EditDetail] = Field(default_factory=list)
    errorMessage: Optional[str] = None


class MultiEditUi(RecordPart):
    fileType: str = "plaintext"
    totalEdits: int = 0
    successfulEdits: int = 0
    failedEdits: int = 0
    changeSummary: Optional[str] = None


class MultiEditRecord(ToolRecord):
    toolType: Literal["multi_edit"] = "multi_edit"
    input: MultiEditInput = Field(default_factory=MultiEditInput)
    results: MultiEditResults = Field(default_factory=MultiEditResults)
    ui: MultiEditUi = Field(default_factory=MultiEditUi)


class GrepInput(RecordPart):
    pattern: str = ""
    searchPath: Optional[str] = None
    filePatterns: list[str] = Field(default_factory=list)
    caseSensitive: bool = True
    outputMode: Optional[str] = None


class GrepResults(RecordPart):
    matches: list[SearchResult] = Field(default_factory=list)
    errorMessage: Optional[str] = None


class SearchUi(RecordPart):
    totalMatches: int = 0
    filesWithMatches: int = 0
    searchTime: Optional[int] = None


class GrepRecord(ToolRecord):
    toolType: Literal["grep"] = "grep"
    input: GrepInput = Field(default_factory=GrepInput)
    results: GrepResults = Field(default_factory=GrepResults)
    ui: SearchUi = Field(default_factory=SearchUi)


class GlobInput(RecordPart):
    pattern: str = ""
    searchPath: Optional[str] = None


class GlobResults(RecordPart):
    files: list[str] = Field(default_factory=list)
    errorMessage: Optional[str] = None


class GlobRecord(ToolRecord):
    toolType: Literal["glob"] = "glob"
    input: GlobInput = Field(default_factory=GlobInput)
    results: GlobResults = Field(default_factory=GlobResults)
    ui: SearchUi = Field(default_factory=SearchUi)


class LsInput(RecordPart):
    path: str = ""
    ignore: list[str] = Field(default_factory=list)


class LsResults(RecordPart):
    entries: list[FileEntry] = Field(default_factory=list)
    entryCount: int = 0
    totalSize: int = 0
    errorMessage: Optional[str] = None


class LsUi(RecordPart):
    totalFiles: int = 0
    totalDirectories: int = 0
    totalSize: int = 0


class LsRecord(ToolRecord):
    toolType: Literal["ls"] = "ls"
    input: LsInput = Field(default_factory=LsInput)
    results: LsResults = Field(default_factory=LsResults)
    ui: LsUi = Field(default_factory=LsUi)


class TodoReadInput(RecordPart):
    pass


class TodoReadResults(RecordPart):
    todos: list[TodoItem] = Field(default_factory=list)
    statusCounts: TodoStatusCounts = Field(default_factory=TodoStatusCounts)
    priorityCounts: TodoPriorityCounts = Field(default_factory=TodoPriorityCounts)
    errorMessage: Optional[str] = None


class TodoUi(RecordPart):
    totalTodos: int = 0
    completedTodos: int = 0
    pendingTodos: int = 0
    inProgressTodos: int = 0


class TodoReadRecord(ToolRecord):
    toolType: Literal["todo_read"] = "todo_read"
    input: TodoReadInput = Field(default_factory=TodoReadInput)
    results: TodoReadResults = Field(default_factory=TodoReadResults)
    ui: TodoUi = Field(default_factory=TodoUi)


class TodoWriteInput(RecordPart):
    todos: list[TodoItem] = Field(default_factory=list)


class TodoWriteResults(RecordPart):
    operation: Literal["create", "update", "replace", "clear"] = "replace"
    changes: list[TodoChange] = Field(default_factory=list)
    addedCount: int = 0
    updatedCount: int = 0
    removedCount: int = 0
    message: Optional[str] = None
    errorMessage: Optional[str] = None


class TodoWriteRecord(ToolRecord):
    toolType: Literal["todo_write"] = "todo_write"
    input: TodoWriteInput = Field(default_factory=TodoWriteInput)
    results: TodoWriteResults = Field(default_factory=TodoWriteResults)
    ui: TodoUi = Field(default_factory=TodoUi)


class PassthroughInput(RecordPart):
    parameters: dict[str, Any] = Field(default_factory=dict)


class PassthroughResults(RecordPart):
    output: Any = None
    errorMessage: Optional[str] = None


class McpUi(RecordPart):
    serverName: str = "unknown"
    methodName: str = ""
    displayMode: Literal["text", "json", "table", "list", "empty"] = "empty"
    isStructured: bool = False
    hasNestedData: bool = False
    keyCount: int = 0
    isLarge: bool = False


class McpRecord(ToolRecord):
    toolType: Literal["mcp"] = "mcp"
    input: PassthroughInput = Field(default_factory=PassthroughInput)
    results: PassthroughResults = Field(default_factory=PassthroughResults)
    ui: McpUi = Field(default_factory=McpUi)


class GenericUi(RecordPart):
    summary: str = ""
    parameterCount: int = 0


class GenericRecord(ToolRecord):
    toolType: Literal["generic"] = "generic"
    input: PassthroughInput = Field(default_factory=PassthroughInput)
    results: PassthroughResults = Field(default_factory=PassthroughResults)
    ui: GenericUi = Field(default_factory=GenericUi)


NormalizedRecord = Annotated[
    Union[
        BashRecord,
        ReadRecord,
        WriteRecord,
        EditRecord,
        MultiEditRecord,
        GrepRecord,
        GlobRecord,
        LsRecord,
        TodoReadRecord,
        TodoWriteRecord,
        McpRecord,
        GenericRecord,
    ],
    Field(discriminator="toolType"),
]


# ── Engine events ───────────────────────────────────────────────────


class ToolCompletedEvent(BaseModel):
    toolName: str
    toolId: str
    duration: Optional[int] = None
    call: RawEntry
    result: RawEntry
    record: Optional[NormalizedRecord] = None


class ToolTimeoutEvent(BaseModel):
    toolName: str
    toolId: str
    call: RawEntry


class CorrelationStats(BaseModel):
    pendingCalls: int = 0
    pendingResults: int = 0
    oldestPendingMs: Optional[int] = None


class TransformResult(BaseModel):
    toolName: str
    toolId: str
    record: NormalizedRecord
