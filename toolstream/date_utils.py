"""Timestamp helpers shared by the monitor and engine."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def now_ms() -> float:
    return time.time() * 1000.0


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp as written in session logs.

    Naive values are taken as UTC. Returns ``None`` for anything unparseable.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    try:
        parsed = datetime.fromisoformat(token.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def timestamp_to_epoch_ms(value: Any) -> float | None:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.timestamp() * 1000.0


def duration_between_ms(start: Any, end: Any) -> int | None:
    """Milliseconds from ``start`` to ``end``, or ``None`` if either is unparseable."""
    start_ms = timestamp_to_epoch_ms(start)
    end_ms = timestamp_to_epoch_ms(end)
    if start_ms is None or end_ms is None:
        return None
    return int(round(end_ms - start_ms))


def file_modified_datetime(path: Path) -> datetime | None:
    try:
        stats = path.stat()
    except OSError:
        return None
    return datetime.fromtimestamp(float(stats.st_mtime), timezone.utc)
