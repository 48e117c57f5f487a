"""Observability helpers."""

from toolstream.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_decoder_failure,
    record_entries_ingested,
    record_line_skipped,
    record_tool_result,
    record_tool_timeout,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_decoder_failure",
    "record_entries_ingested",
    "record_line_skipped",
    "record_tool_result",
    "record_tool_timeout",
]
