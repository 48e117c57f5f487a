"""Shell command decoder."""
from __future__ import annotations

import re
from typing import Any, Optional

from toolstream.models import BashInput, BashRecord, BashResults, BashUi, ToolUseBlock
from toolstream.parsers.base import BaseToolDecoder
from toolstream.parsers.helpers import as_text, count_lines, first_str, optional_int, optional_str

_EXIT_CODE_PATTERN = re.compile(r"^\s*exit code[:\s]+(-?\d+)", re.IGNORECASE)


def _join_output(stdout: str, stderr: str) -> str:
    return "\n".join(part for part in (stdout, stderr) if part)


class BashDecoder(BaseToolDecoder):
    tool_names = ("Bash",)
    tool_type = "bash"
    record_class = BashRecord
    description = "Shell commands with stdout/stderr and exit code"
    features = ("status-mapping", "correlation", "exit-code", "interrupt-detection")

    def parse_input(self, params: dict[str, Any]) -> BashInput:
        return BashInput(
            command=first_str(params, "command"),
            description=optional_str(params, "description"),
            timeout=optional_int(params.get("timeout")),
            workingDirectory=optional_str(params, "workingDirectory", "cwd"),
        )

    def empty_results(self) -> BashResults:
        return BashResults()

    def parse_results(self, payload: Any, raw: Any, params: BashInput) -> BashResults:
        data = payload if isinstance(payload, dict) else raw if isinstance(raw, dict) else None
        if data is not None:
            stdout = as_text(data.get("stdout", data.get("output")))
            stderr = as_text(data.get("stderr"))
            exit_code = optional_int(data.get("exit_code", data.get("exitCode")))
            return BashResults(
                output=_join_output(stdout, stderr),
                errorOutput=stderr,
                exitCode=0 if exit_code is None else exit_code,
                interrupted=data.get("interrupted") is True,
            )

        text = as_text(payload)
        return BashResults(output=text, exitCode=0, interrupted=text.lstrip().startswith("[Request interrupted"))

    def error_results(self, message: str, payload: Any, raw: Any, params: BashInput) -> BashResults:
        stdout = ""
        stderr = message
        if isinstance(raw, dict):
            stdout = as_text(raw.get("stdout"))
            stderr = as_text(raw.get("stderr")) or message

        exit_code: Optional[int] = None
        if isinstance(payload, dict):
            exit_code = optional_int(payload.get("exit_code", payload.get("exitCode")))
        if exit_code is None:
            match = _EXIT_CODE_PATTERN.match(message)
            exit_code = int(match.group(1)) if match else 1

        return BashResults(
            output=_join_output(stdout, stderr),
            errorOutput=stderr,
            exitCode=exit_code,
            interrupted=isinstance(raw, dict) and raw.get("interrupted") is True,
            errorMessage=message,
        )

    def build_ui(self, tool_use: ToolUseBlock, params: BashInput, results: BashResults, duration: Optional[int]) -> BashUi:
        return BashUi(
            promptText=params.description,
            outputLines=count_lines(results.output),
            showCopyButton=bool(results.output),
        )
