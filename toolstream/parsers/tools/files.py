"""Decoders for the file tools: Read, Write, Edit and MultiEdit."""
from __future__ import annotations

import difflib
import re
from typing import Any, Optional

from toolstream.models import (
    DiffLine,
    EditDetail,
    EditInput,
    EditOperation,
    EditRecord,
    EditResults,
    EditUi,
    FileUi,
    MultiEditInput,
    MultiEditRecord,
    MultiEditResults,
    MultiEditUi,
    ReadInput,
    ReadRecord,
    ReadResults,
    ToolUseBlock,
    WriteInput,
    WriteRecord,
    WriteResults,
)
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.helpers import (
    as_text,
    coerce_int,
    count_lines,
    first_str,
    infer_file_type,
    optional_int,
)

_CREATED_MARKERS = ("created successfully", "file created")
_OVERWRITTEN_MARKERS = ("updated successfully", "overwritten", "file updated")
_APPLIED_EDITS_PATTERN = re.compile(r"applied\s+(\d+)\s+edits?", re.IGNORECASE)


def generate_diff(old_text: str, new_text: str) -> list[DiffLine]:
    """Line diff between two snippets with 1-based line numbers on each side."""
    old_lines = old_text.splitlines()
    new_lines = new_text.splitlines()
    diff: list[DiffLine] = []
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                diff.append(
                    DiffLine(
                        type="unchanged",
                        content=old_lines[i1 + offset],
                        oldLineNumber=i1 + offset + 1,
                        newLineNumber=j1 + offset + 1,
                    )
                )
            continue
        for index in range(i1, i2):
            diff.append(DiffLine(type="removed", content=old_lines[index], oldLineNumber=index + 1))
        for index in range(j1, j2):
            diff.append(DiffLine(type="added", content=new_lines[index], newLineNumber=index + 1))
    return diff


def _file_path(params: dict[str, Any]) -> str:
    return first_str(params, "file_path", "filePath", "path")


def _message_of(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("message", "result", "content"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
        return None
    text = as_text(payload)
    return text or None


class ReadDecoder(BaseToolDecoder):
    tool_names = ("Read",)
    tool_type = "read"
    record_class = ReadRecord
    description = "File reads with line counts and truncation detection"

    def parse_input(self, params: dict[str, Any]) -> ReadInput:
        return ReadInput(
            filePath=_file_path(params),
            offset=optional_int(params.get("offset")),
            limit=optional_int(params.get("limit")),
        )

    def empty_results(self) -> ReadResults:
        return ReadResults()

    def parse_results(self, payload: Any, raw: Any, params: ReadInput) -> ReadResults:
        file_info = raw.get("file") if isinstance(raw, dict) else None
        file_info = file_info if isinstance(file_info, dict) else {}

        if isinstance(payload, dict):
            content = as_text(payload.get("content"))
        else:
            content = as_text(payload)
        if not content and isinstance(file_info.get("content"), str):
            content = file_info["content"]

        line_count = count_lines(content)
        total_lines = coerce_int(file_info.get("totalLines"), line_count) or line_count
        returned_lines = coerce_int(file_info.get("numLines"), line_count)
        truncated = returned_lines < total_lines
        if params.limit is not None and line_count >= params.limit and not file_info:
            truncated = True

        return ReadResults(
            content=content,
            totalLines=total_lines,
            fileSize=len(content.encode("utf-8")),
            truncated=truncated,
        )

    def build_ui(self, tool_use: ToolUseBlock, params: ReadInput, results: ReadResults, duration: Optional[int]) -> FileUi:
        return FileUi(
            fileType=infer_file_type(params.filePath),
            lineCount=count_lines(results.content),
        )


class WriteDecoder(BaseToolDecoder):
    tool_names = ("Write",)
    tool_type = "write"
    record_class = WriteRecord
    description = "File writes, distinguishing creation from overwrite"

    def parse_input(self, params: dict[str, Any]) -> WriteInput:
        content = params.get("content")
        return WriteInput(filePath=_file_path(params), content=content if isinstance(content, str) else as_text(content))

    def empty_results(self) -> WriteResults:
        return WriteResults()

    def parse_results(self, payload: Any, raw: Any, params: WriteInput) -> WriteResults:
        message = _message_of(payload)
        lowered = (message or "").lower()
        if any(marker in lowered for marker in _OVERWRITTEN_MARKERS):
            return WriteResults(created=False, overwritten=True, message=message)
        if any(marker in lowered for marker in _CREATED_MARKERS):
            return WriteResults(created=True, overwritten=False, message=message)

        write_kind = raw.get("type") if isinstance(raw, dict) else None
        if write_kind == "update":
            return WriteResults(created=False, overwritten=True, message=message)
        return WriteResults(created=True, overwritten=False, message=message)

    def build_ui(self, tool_use: ToolUseBlock, params: WriteInput, results: WriteResults, duration: Optional[int]) -> FileUi:
        return FileUi(fileType=infer_file_type(params.filePath), lineCount=count_lines(params.content))


class EditDecoder(BaseToolDecoder):
    tool_names = ("Edit",)
    tool_type = "edit"
    record_class = EditRecord
    description = "Single string replacement with a line diff"
    features = ("status-mapping", "correlation", "diff")

    def parse_input(self, params: dict[str, Any]) -> EditInput:
        return EditInput(
            filePath=_file_path(params),
            oldString=first_str(params, "old_string", "oldString"),
            newString=first_str(params, "new_string", "newString"),
            replaceAll=params.get("replace_all", params.get("replaceAll")) is True,
        )

    def empty_results(self) -> EditResults:
        return EditResults()

    def parse_results(self, payload: Any, raw: Any, params: EditInput) -> EditResults:
        return EditResults(
            diff=generate_diff(params.oldString, params.newString),
            message=_message_of(payload),
        )

    def build_ui(self, tool_use: ToolUseBlock, params: EditInput, results: EditResults, duration: Optional[int]) -> EditUi:
        return EditUi(
            fileType=infer_file_type(params.filePath),
            addedLines=sum(1 for line in results.diff if line.type == "added"),
            removedLines=sum(1 for line in results.diff if line.type == "removed"),
        )


class MultiEditDecoder(BaseToolDecoder):
    tool_names = ("MultiEdit",)
    tool_type = "multi_edit"
    record_class = MultiEditRecord
    description = "Batched replacements in one file with per-edit outcome"

    def parse_input(self, params: dict[str, Any]) -> MultiEditInput:
        edits: list[EditOperation] = []
        raw_edits = params.get("edits")
        for item in raw_edits if isinstance(raw_edits, list) else []:
            if not isinstance(item, dict):
                continue
            edits.append(
                EditOperation(
                    oldString=first_str(item, "old_string", "oldString"),
                    newString=first_str(item, "new_string", "newString"),
                    replaceAll=item.get("replace_all", item.get("replaceAll")) is True,
                )
            )
        return MultiEditInput(filePath=_file_path(params), edits=edits)

    def empty_results(self) -> MultiEditResults:
        return MultiEditResults()

    def _details_from(self, data: dict[str, Any], params: MultiEditInput) -> list[EditDetail]:
        raw_details = data.get("editDetails", data.get("edit_details"))
        details: list[EditDetail] = []
        for index, item in enumerate(raw_details if isinstance(raw_details, list) else []):
            if not isinstance(item, dict):
                continue
            position = coerce_int(item.get("index"), index)
            operation = params.edits[position] if 0 <= position < len(params.edits) else EditOperation()
            error = item.get("error")
            details.append(
                EditDetail(
                    index=position,
                    operation=operation,
                    success=item.get("success", error is None) is True,
                    replacementsMade=coerce_int(item.get("replacementsMade", item.get("replacements_made"))),
                    error=error if isinstance(error, str) else None,
                )
            )
        return details

    def parse_results(self, payload: Any, raw: Any, params: MultiEditInput) -> MultiEditResults:
        total = len(params.edits)
        data = payload if isinstance(payload, dict) else raw if isinstance(raw, dict) else {}
        message = _message_of(payload)

        details = self._details_from(data, params)
        applied = optional_int(data.get("editsApplied", data.get("edits_applied")))
        if applied is None and details:
            applied = sum(1 for detail in details if detail.success)
        if applied is None and message:
            match = _APPLIED_EDITS_PATTERN.search(message)
            if match:
                applied = int(match.group(1))
        if applied is None and isinstance(data.get("edits"), list):
            applied = len(data["edits"])
        applied = applied or 0

        all_successful = data.get("allSuccessful")
        if not isinstance(all_successful, bool):
            all_successful = total > 0 and applied == total

        if not details and all_successful:
            details = [
                EditDetail(index=index, operation=edit, success=True, replacementsMade=1)
                for index, edit in enumerate(params.edits)
            ]

        return MultiEditResults(
            message=message,
            editsApplied=applied,
            totalEdits=total,
            allSuccessful=all_successful,
            editDetails=details,
        )

    def error_results(self, message: str, payload: Any, raw: Any, params: MultiEditInput) -> MultiEditResults:
        return MultiEditResults(totalEdits=len(params.edits), errorMessage=message)

    def build_ui(
        self,
        tool_use: ToolUseBlock,
        params: MultiEditInput,
        results: MultiEditResults,
        duration: Optional[int],
    ) -> MultiEditUi:
        successful = results.editsApplied
        if results.editDetails:
            successful = sum(1 for detail in results.editDetails if detail.success)
        summary = results.message.splitlines()[0] if results.message else None
        return MultiEditUi(
            fileType=infer_file_type(params.filePath),
            totalEdits=len(params.edits),
            successfulEdits=successful,
            failedEdits=max(len(params.edits) - successful, 0),
            changeSummary=summary,
        )
