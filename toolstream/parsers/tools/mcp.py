"""MCP server tools and the generic catch-all decoder."""
from __future__ import annotations

from typing import Any, Optional

from toolstream.models import (
    GenericRecord,
    GenericUi,
    McpRecord,
    McpUi,
    PassthroughInput,
    PassthroughResults,
    ToolUseBlock,
)
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.helpers import as_text, maybe_json

_MCP_PREFIXES = ("mcp__", "mcp_")
_LARGE_OUTPUT_CHARS = 10_000
_SUMMARY_CHARS = 120


def split_mcp_name(tool_name: str) -> tuple[str, str]:
    """``mcp__server__method`` -> ``("server", "method")``."""
    if tool_name.startswith("mcp__"):
        rest = tool_name[len("mcp__"):]
        server, sep, method = rest.partition("__")
        if sep:
            return server or "unknown", method
        return "unknown", rest
    if tool_name.startswith("mcp_"):
        server, sep, method = tool_name[len("mcp_"):].partition("_")
        if sep:
            return server or "unknown", method
        return "unknown", server
    return "unknown", tool_name


def display_mode_for(output: Any) -> str:
    if output is None or output == "" or output == [] or output == {}:
        return "empty"
    if isinstance(output, list):
        if all(isinstance(item, dict) for item in output):
            return "table"
        return "list"
    if isinstance(output, dict):
        return "json"
    return "text"


def _has_nested(output: Any) -> bool:
    values = output.values() if isinstance(output, dict) else output if isinstance(output, list) else ()
    return any(isinstance(value, (dict, list)) for value in values)


def _key_count(output: Any) -> int:
    if isinstance(output, dict):
        return len(output)
    if isinstance(output, list):
        return len(output)
    return 0


def _passthrough_output(payload: Any, raw: Any) -> Any:
    if payload is None and raw is not None:
        return raw
    return maybe_json(payload)


class McpDecoder(BaseToolDecoder):
    tool_type = "mcp"
    record_class = McpRecord
    description = "Tools served by MCP servers (mcp__server__method)"
    features = ("status-mapping", "correlation", "structured-output")

    def matches_tool_name(self, name: str) -> bool:
        return name.startswith(_MCP_PREFIXES)

    def describe(self) -> dict[str, Any]:
        meta = super().describe()
        meta["toolNames"] = [f"{prefix}*" for prefix in _MCP_PREFIXES]
        return meta

    def parse_input(self, params: dict[str, Any]) -> PassthroughInput:
        return PassthroughInput(parameters=dict(params))

    def empty_results(self) -> PassthroughResults:
        return PassthroughResults()

    def parse_results(self, payload: Any, raw: Any, params: PassthroughInput) -> PassthroughResults:
        return PassthroughResults(output=_passthrough_output(payload, raw))

    def error_results(self, message: str, payload: Any, raw: Any, params: PassthroughInput) -> PassthroughResults:
        return PassthroughResults(output=_passthrough_output(payload, raw), errorMessage=message)

    def build_ui(self, tool_use: ToolUseBlock, params: PassthroughInput, results: PassthroughResults, duration: Optional[int]) -> McpUi:
        server, method = split_mcp_name(tool_use.name)
        output = results.output
        return McpUi(
            serverName=server,
            methodName=method,
            displayMode=display_mode_for(output),
            isStructured=isinstance(output, (dict, list)),
            hasNestedData=_has_nested(output),
            keyCount=_key_count(output),
            isLarge=len(as_text(output)) > _LARGE_OUTPUT_CHARS,
        )


class GenericDecoder(BaseToolDecoder):
    tool_type = "generic"
    record_class = GenericRecord
    description = "Fallback for tools without a dedicated decoder"
    is_fallback = True

    def matches_tool_name(self, name: str) -> bool:
        return True

    def describe(self) -> dict[str, Any]:
        meta = super().describe()
        meta["toolNames"] = ["*"]
        return meta

    def parse_input(self, params: dict[str, Any]) -> PassthroughInput:
        return PassthroughInput(parameters=dict(params))

    def empty_results(self) -> PassthroughResults:
        return PassthroughResults()

    def parse_results(self, payload: Any, raw: Any, params: PassthroughInput) -> PassthroughResults:
        return PassthroughResults(output=payload if payload is not None else raw)

    def build_ui(self, tool_use: ToolUseBlock, params: PassthroughInput, results: PassthroughResults, duration: Optional[int]) -> GenericUi:
        summary = as_text(results.output).strip().splitlines()
        first_line = summary[0] if summary else ""
        if len(first_line) > _SUMMARY_CHARS:
            first_line = first_line[: _SUMMARY_CHARS - 3] + "..."
        return GenericUi(summary=first_line, parameterCount=len(params.parameters))
