"""Server-sent-event stream of pipeline events."""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from sse_starlette import ServerSentEvent
from sse_starlette.sse import EventSourceResponse

logger = logging.getLogger("toolstream.api")

events_router = APIRouter(prefix="/api/events", tags=["events"])

KEEPALIVE_SECONDS = 30.0


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@events_router.get("")
async def event_stream(request: Request) -> EventSourceResponse:
    """Stream ``entry``, ``session:*``, ``tool:*`` and ``error`` events.

    A ``connected`` event opens the stream and a ``keepalive`` event is sent
    after every quiet period.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if not pipeline:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    broadcaster = pipeline.broadcaster

    async def event_generator():
        queue = broadcaster.subscribe()
        try:
            yield ServerSentEvent(data=json.dumps({"timestamp": _timestamp()}), event="connected")
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ServerSentEvent(data=json.dumps({"timestamp": _timestamp()}), event="keepalive")
                    continue
                yield ServerSentEvent(data=json.dumps(event["data"], default=str), event=event["event"])
        except asyncio.CancelledError:
            logger.info("SSE client disconnected")
            raise
        finally:
            broadcaster.unsubscribe(queue)

    return EventSourceResponse(event_generator())
