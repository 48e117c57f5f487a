"""Pairs tool calls with their results.

Calls and results arrive interleaved and in either order. Whichever side
arrives first waits in a pending table keyed by the tool invocation id; the
other side completes the pair, which is decoded into a normalized record and
announced as ``tool:completed``. Entries that wait longer than the timeout
are evicted by a periodic sweep.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from toolstream import config
from toolstream.date_utils import duration_between_ms, now_ms
from toolstream.events import TOOL_COMPLETED, TOOL_TIMEOUT, EventEmitter
from toolstream.models import (
    CorrelationStats,
    RawEntry,
    ToolCompletedEvent,
    ToolRecord,
    ToolTimeoutEvent,
)
from toolstream.observability import otel
from toolstream.parsers.content import find_tool_result, find_tool_use, tool_name_of
from toolstream.parsers.registry import DecoderRegistry, create_default_registry

logger = logging.getLogger("toolstream.correlation")


@dataclass
class PendingCorrelation:
    entry: RawEntry
    stored_at_ms: float
    attempts: int = 0


class CorrelationEngine(EventEmitter):
    def __init__(
        self,
        registry: Optional[DecoderRegistry] = None,
        *,
        timeout_ms: int = config.CORRELATION_TIMEOUT_MS,
        sweep_interval_ms: int = config.CORRELATION_SWEEP_INTERVAL_MS,
        clock: Callable[[], float] = now_ms,
    ):
        super().__init__()
        self.registry = registry if registry is not None else create_default_registry()
        self.timeout_ms = timeout_ms
        self.sweep_interval_ms = sweep_interval_ms
        self._clock = clock
        self._pending_calls: dict[str, PendingCorrelation] = {}
        self._pending_results: dict[str, PendingCorrelation] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None

    def process_entry(self, entry: RawEntry) -> Optional[ToolRecord]:
        """Feed one entry; returns the record when it completes a pair."""
        tool_use = find_tool_use(entry)
        if tool_use is not None:
            if not tool_use.id:
                logger.debug(f"tool_use without id in entry {entry.uuid}; ignoring")
                return None
            pending_result = self._pending_results.pop(tool_use.id, None)
            if pending_result is None:
                self._store(self._pending_calls, tool_use.id, entry)
                return None
            return self._complete(entry, pending_result.entry, tool_use.name, tool_use.id)

        block = find_tool_result(entry)
        if block is not None:
            if not block.toolUseId:
                logger.debug(f"tool_result without tool_use_id in entry {entry.uuid}; ignoring")
                return None
            pending_call = self._pending_calls.pop(block.toolUseId, None)
            if pending_call is None:
                self._store(self._pending_results, block.toolUseId, entry)
                return None
            name = tool_name_of(pending_call.entry) or "unknown"
            return self._complete(pending_call.entry, entry, name, block.toolUseId)

        return None

    def _store(self, table: dict[str, PendingCorrelation], tool_id: str, entry: RawEntry) -> None:
        existing = table.get(tool_id)
        if existing is not None:
            # Same id seen again (e.g. a re-read file): keep the newest entry.
            existing.entry = entry
            existing.attempts += 1
            return
        table[tool_id] = PendingCorrelation(entry=entry, stored_at_ms=self._clock())

    def _complete(self, call: RawEntry, result: RawEntry, tool_name: str, tool_id: str) -> Optional[ToolRecord]:
        duration = duration_between_ms(call.timestamp, result.timestamp)
        with otel.start_span("toolstream.decode", {"tool.name": tool_name, "tool.id": tool_id}):
            try:
                record = self.registry.decode(call, result)
            except Exception as e:
                logger.error(f"Decoder failed for {tool_name} ({tool_id}): {e}")
                otel.record_decoder_failure(tool_name)
                return None

        if record is None:
            logger.warning(f"No decoder registered for tool {tool_name} ({tool_id})")
        else:
            otel.record_tool_result(tool_name, record.status.normalized, duration)

        self.emit(
            TOOL_COMPLETED,
            ToolCompletedEvent(
                toolName=tool_name,
                toolId=tool_id,
                duration=duration,
                call=call,
                result=result,
                record=record,
            ),
        )
        return record

    def sweep_timed_out(self) -> int:
        """Evict entries pending longer than the timeout; returns how many were evicted."""
        cutoff = self._clock() - self.timeout_ms
        evicted = 0

        for tool_id, pending in list(self._pending_calls.items()):
            if pending.stored_at_ms > cutoff:
                continue
            del self._pending_calls[tool_id]
            evicted += 1
            tool_name = tool_name_of(pending.entry) or "unknown"
            logger.info(f"Tool call timed out: {tool_name} ({tool_id})")
            otel.record_tool_timeout(tool_name)
            self.emit(TOOL_TIMEOUT, ToolTimeoutEvent(toolName=tool_name, toolId=tool_id, call=pending.entry))

        for tool_id, pending in list(self._pending_results.items()):
            if pending.stored_at_ms > cutoff:
                continue
            del self._pending_results[tool_id]
            evicted += 1
            logger.info(f"Dropping orphan tool result {tool_id}: no matching call arrived")

        return evicted

    def get_stats(self) -> CorrelationStats:
        stored = [p.stored_at_ms for p in self._pending_calls.values()]
        stored += [p.stored_at_ms for p in self._pending_results.values()]
        oldest = int(self._clock() - min(stored)) if stored else None
        return CorrelationStats(
            pendingCalls=len(self._pending_calls),
            pendingResults=len(self._pending_results),
            oldestPendingMs=oldest,
        )

    def pending_calls(self) -> list[ToolRecord]:
        """Pending-status records for every call still waiting on its result."""
        records: list[ToolRecord] = []
        for tool_id, pending in self._pending_calls.items():
            try:
                record = self.registry.decode(pending.entry)
            except Exception as e:
                logger.warning(f"Could not render pending call {tool_id}: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    def start(self) -> None:
        if self._sweep_task is not None:
            logger.warning("CorrelationEngine already started")
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Correlation engine started (timeout={self.timeout_ms}ms sweep={self.sweep_interval_ms}ms)")

    async def stop(self) -> None:
        if self._sweep_task is None:
            logger.warning("CorrelationEngine is not running")
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        self._pending_calls.clear()
        self._pending_results.clear()
        logger.info("Correlation engine stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_ms / 1000.0)
            try:
                self.sweep_timed_out()
            except Exception as e:
                logger.error(f"Correlation sweep failed: {e}")
