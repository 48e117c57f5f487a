"""Observer-style event dispatch shared by the monitor, engine and pipeline.

Listeners are called synchronously in registration order. A coroutine
listener is scheduled on the running loop. A failing listener is logged and
never breaks the emitter or the other listeners.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger("toolstream.events")

Listener = Callable[[Any], Any]

# Event names emitted by FileMonitor
ENTRY = "entry"
SESSION_NEW = "session:new"
SESSION_ACTIVE = "session:active"
SESSION_INACTIVE = "session:inactive"
ERROR = "error"

# Event names emitted by CorrelationEngine
TOOL_COMPLETED = "tool:completed"
TOOL_TIMEOUT = "tool:timeout"


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._pending_tasks: set[asyncio.Task] = set()

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event``; returns a callable that unregisters it."""
        self._listeners[event].append(listener)

        def _unsubscribe() -> None:
            self.off(event, listener)

        return _unsubscribe

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, payload: Any = None) -> bool:
        """Deliver ``payload`` to every listener; returns whether anyone listened."""
        listeners = list(self._listeners.get(event, ()))
        if not listeners:
            if event == ERROR:
                logger.error(f"Unhandled error event: {payload}")
            return False

        for listener in listeners:
            try:
                result = listener(payload)
            except Exception as e:
                logger.exception(f"Listener for '{event}' failed: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)
        return True

    def _schedule(self, event: str, awaitable: Any) -> None:
        try:
            task = asyncio.ensure_future(awaitable)
        except RuntimeError:
            logger.error(f"Async listener for '{event}' dropped: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)
        task.add_done_callback(lambda t: self._report_task_failure(event, t))

    @staticmethod
    def _report_task_failure(event: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async listener for '{event}' failed: {exc}")
