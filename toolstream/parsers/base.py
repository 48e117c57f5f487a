"""Base class for the per-tool decoders.

A decoder turns a tool call entry, plus its result entry when one exists,
into a frozen :class:`~toolstream.models.ToolRecord`. ``decode`` owns the
status contract shared by every tool:

* no result entry, or no matching result block: ``pending``
* ``is_error`` on the result block: ``failed`` with the error message
* an interruption marker in the payload: ``interrupted``
* otherwise ``completed``

Subclasses only describe how their own input, results and UI summary look.
"""
from __future__ import annotations

from typing import Any, ClassVar, Optional

from pydantic import BaseModel

from toolstream.date_utils import duration_between_ms
from toolstream.models import RawEntry, ToolRecord, ToolResultBlock, ToolUseBlock
from toolstream.parsers.content import find_tool_result, find_tool_use
from toolstream.parsers.helpers import extract_error_message
from toolstream.parsers.status import is_interrupted, map_from_error, original_status_token


class BaseToolDecoder:
    tool_names: ClassVar[tuple[str, ...]] = ()
    tool_type: ClassVar[str] = "generic"
    record_class: ClassVar[type[ToolRecord]] = ToolRecord
    version: ClassVar[str] = "1.0.0"
    description: ClassVar[str] = ""
    features: ClassVar[tuple[str, ...]] = ("status-mapping", "correlation")
    is_fallback: ClassVar[bool] = False

    def matches_tool_name(self, name: str) -> bool:
        folded = name.casefold()
        return any(folded == candidate.casefold() for candidate in self.tool_names)

    def can_handle(self, entry: RawEntry) -> bool:
        return find_tool_use(entry, self.matches_tool_name) is not None

    def describe(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "toolType": self.tool_type,
            "toolNames": list(self.tool_names),
            "version": self.version,
            "description": self.description,
            "features": list(self.features),
            "fallback": self.is_fallback,
        }

    def decode(self, call: RawEntry, result: Optional[RawEntry] = None) -> ToolRecord:
        tool_use = find_tool_use(call, self.matches_tool_name)
        if tool_use is None:
            raise ValueError(f"{type(self).__name__} cannot decode entry {call.uuid}: no matching tool_use block")

        params = self.parse_input(tool_use.input)
        block: Optional[ToolResultBlock] = None
        if result is not None:
            block = find_tool_result(result, tool_use.id) or find_tool_result(result)

        if result is None or block is None:
            status = map_from_error(pending=True)
            results = self.empty_results()
            duration = None
        else:
            raw = result.toolUseResult
            duration = duration_between_ms(call.timestamp, result.timestamp)
            original = original_status_token(block.payload, raw)
            if block.isError:
                message = extract_error_message(block.payload, raw, f"{tool_use.name} operation failed")
                status = map_from_error(True, original=original)
                status = status.model_copy(update={"details": {**status.details, "errorMessage": message}})
                results = self.error_results(message, block.payload, raw, params)
            elif is_interrupted(block.payload, raw):
                status = map_from_error(interrupted=True, original=original)
                results = self.parse_results(block.payload, raw, params)
            else:
                status = map_from_error(original=original)
                results = self.parse_results(block.payload, raw, params)

        return self.record_class(
            toolName=tool_use.name,
            id=tool_use.id,
            uuid=call.uuid,
            parentUuid=call.parentUuid,
            timestamp=call.timestamp,
            duration=duration,
            status=status,
            input=params,
            results=results,
            ui=self.build_ui(tool_use, params, results, duration),
        )

    # Subclass hooks

    def parse_input(self, params: dict[str, Any]) -> BaseModel:
        raise NotImplementedError

    def empty_results(self) -> BaseModel:
        raise NotImplementedError

    def parse_results(self, payload: Any, raw: Any, params: Any) -> BaseModel:
        raise NotImplementedError

    def error_results(self, message: str, payload: Any, raw: Any, params: Any) -> BaseModel:
        return self.empty_results().model_copy(update={"errorMessage": message})

    def build_ui(
        self,
        tool_use: ToolUseBlock,
        params: Any,
        results: Any,
        duration: Optional[int],
    ) -> BaseModel:
        raise NotImplementedError
