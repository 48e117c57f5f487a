"""Fan-out of pipeline events to server-sent-event subscribers.

Each subscriber gets its own bounded queue so a slow client never blocks
the pipeline; when a queue is full its oldest event is dropped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from toolstream import config

logger = logging.getLogger("toolstream.streaming")


class EventBroadcaster:
    def __init__(self, queue_size: int = config.EVENT_QUEUE_SIZE):
        self.queue_size = queue_size
        self.queues: list[asyncio.Queue[dict[str, Any]]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self.queues)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.queue_size)
        self.queues.append(queue)
        logger.debug(f"SSE subscriber added ({len(self.queues)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.queues:
            self.queues.remove(queue)
            logger.debug(f"SSE subscriber removed ({len(self.queues)} total)")

    def publish(self, event_type: str, data: Any) -> None:
        """Queue ``data`` for every subscriber without waiting."""
        event = {"event": event_type, "data": data}
        for queue in list(self.queues):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning(f"SSE subscriber queue full; dropped oldest event before {event_type}")
            queue.put_nowait(event)
