"""Wires the file monitor into the correlation engine and fans events out."""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from toolstream import config
from toolstream.correlation.engine import CorrelationEngine
from toolstream.events import (
    ENTRY,
    ERROR,
    SESSION_ACTIVE,
    SESSION_INACTIVE,
    SESSION_NEW,
    TOOL_COMPLETED,
    TOOL_TIMEOUT,
)
from toolstream.models import RawEntry, ToolCompletedEvent, ToolRecord, ToolTimeoutEvent
from toolstream.monitor.file_monitor import FileMonitor
from toolstream.path_codec import PathCorrections
from toolstream.streaming import EventBroadcaster

logger = logging.getLogger("toolstream.pipeline")


class ToolStreamPipeline:
    """Monitor -> engine -> records, with a bounded buffer of recent records.

    Every monitor and engine event is republished to the SSE broadcaster.
    """

    def __init__(
        self,
        monitor: Optional[FileMonitor] = None,
        engine: Optional[CorrelationEngine] = None,
        *,
        broadcaster: Optional[EventBroadcaster] = None,
        corrections: Optional[PathCorrections] = None,
        recent_limit: int = config.RECENT_RECORD_LIMIT,
        backfill: bool = config.BACKFILL_ON_STARTUP,
    ):
        self.corrections = corrections if corrections is not None else PathCorrections(config.PATH_CORRECTIONS_FILE)
        self.monitor = monitor if monitor is not None else FileMonitor(corrections=self.corrections)
        self.engine = engine if engine is not None else CorrelationEngine()
        self.broadcaster = broadcaster if broadcaster is not None else EventBroadcaster()
        self.backfill = backfill
        self._recent: deque[ToolRecord] = deque(maxlen=max(1, recent_limit))
        self._unsubscribers: list[Callable[[], None]] = []
        self._entries_seen = 0
        self._records_emitted = 0
        self._timeouts = 0
        self._started_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    def _wire(self) -> None:
        self._unsubscribers = [
            self.monitor.on(ENTRY, self._on_live_entry),
            self.monitor.on(SESSION_NEW, lambda s: self._publish(SESSION_NEW, s)),
            self.monitor.on(SESSION_ACTIVE, lambda s: self._publish(SESSION_ACTIVE, s)),
            self.monitor.on(SESSION_INACTIVE, lambda s: self._publish(SESSION_INACTIVE, s)),
            self.monitor.on(ERROR, self._on_monitor_error),
            self.engine.on(TOOL_COMPLETED, self._on_tool_completed),
            self.engine.on(TOOL_TIMEOUT, self._on_tool_timeout),
        ]

    def _publish(self, event: str, payload: Any) -> None:
        data = payload.model_dump(mode="json") if hasattr(payload, "model_dump") else payload
        self.broadcaster.publish(event, data)

    def _process(self, entry: RawEntry) -> None:
        self._entries_seen += 1
        self.engine.process_entry(entry)

    def _on_live_entry(self, entry: RawEntry) -> None:
        self._publish(ENTRY, entry)
        self._process(entry)

    def _on_monitor_error(self, error: Any) -> None:
        logger.error(f"File monitor error: {error}")
        self.broadcaster.publish(ERROR, {"error": str(error)})

    def _on_tool_completed(self, event: ToolCompletedEvent) -> None:
        if event.record is not None:
            self._recent.append(event.record)
            self._records_emitted += 1
        self._publish(TOOL_COMPLETED, event)

    def _on_tool_timeout(self, event: ToolTimeoutEvent) -> None:
        self._timeouts += 1
        self._publish(TOOL_TIMEOUT, event)

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Pipeline already running")
            return

        self._wire()
        if self.backfill:
            count = 0
            async for entry in self.monitor.read_all():
                self._process(entry)
                count += 1
            logger.info(f"Backfilled {count} entries from {self.monitor.projects_dir}")

        self.engine.start()
        await self.monitor.start_watching()
        self._started_at = datetime.now(timezone.utc)
        logger.info("Pipeline started")

    async def stop(self) -> None:
        if not self.is_running:
            logger.warning("Pipeline is not running")
            return

        await self.monitor.stop_watching()
        await self.engine.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._started_at = None
        logger.info("Pipeline stopped")

    def recent_records(self, limit: Optional[int] = None, tool_type: Optional[str] = None) -> list[ToolRecord]:
        """Newest first."""
        records = [r for r in reversed(self._recent) if tool_type is None or r.toolType == tool_type]
        return records if limit is None else records[: max(0, limit)]

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "startedAt": self._started_at,
            "projectsDir": str(self.monitor.projects_dir),
            "watching": self.monitor.is_watching,
            "entriesSeen": self._entries_seen,
            "recordsEmitted": self._records_emitted,
            "timeouts": self._timeouts,
            "subscribers": self.broadcaster.subscriber_count,
        }
