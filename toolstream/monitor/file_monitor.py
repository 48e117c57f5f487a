"""Session log discovery and incremental tailing.

The log root holds one directory per project and one ``.jsonl`` file per
session inside it. The monitor remembers a byte offset per file, so every
change only reads what was appended since the last read. Entries are emitted
as ``entry`` events in file order; session liveness is reported through the
``session:*`` events.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, NamedTuple, Optional

from watchfiles import Change, awatch

from toolstream import config
from toolstream.date_utils import file_modified_datetime, now_ms
from toolstream.events import (
    ENTRY,
    ERROR,
    SESSION_ACTIVE,
    SESSION_INACTIVE,
    SESSION_NEW,
    EventEmitter,
)
from toolstream.models import ActiveSession, RawEntry, SessionInfo
from toolstream.observability import otel
from toolstream.path_codec import PathCorrections, project_from_path, session_id_from_path

logger = logging.getLogger("toolstream.monitor")

_ENTRY_TYPES = {"user", "assistant"}


def _resolve_path(path: Path | str) -> Path:
    """Absolute, symlink-free form used for every offset and session key."""
    return Path(path).expanduser().resolve()


class ChunkRead(NamedTuple):
    lines: list[str]
    offset: int
    size: int
    reset: bool


def read_new_lines(path: Path, offset: int) -> ChunkRead:
    """Read the complete lines appended to ``path`` past ``offset``.

    An unterminated last line is only consumed if it is valid JSON; otherwise
    it stays unread until the writer finishes it. A file smaller than
    ``offset`` was truncated or rewritten and is read again from the start.
    """
    with path.open("rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        reset = size < offset
        if reset:
            offset = 0
        handle.seek(offset)
        chunk = handle.read(size - offset)

    lines: list[str] = []
    start = 0
    while True:
        newline = chunk.find(b"\n", start)
        if newline == -1:
            break
        lines.append(chunk[start:newline].decode("utf-8", errors="replace"))
        start = newline + 1

    tail = chunk[start:]
    if tail.strip():
        text = tail.decode("utf-8", errors="replace")
        try:
            json.loads(text)
        except ValueError:
            pass
        else:
            lines.append(text)
            start = len(chunk)

    return ChunkRead(lines=lines, offset=offset + start, size=size, reset=reset)


def normalize_entry(data: Any) -> Optional[RawEntry]:
    """Build a :class:`RawEntry` from one decoded log line.

    Returns ``None`` for lines without a ``uuid`` or whose ``type`` is not
    ``user``/``assistant`` (summaries, system notices, snapshots).
    """
    if not isinstance(data, dict):
        return None
    uuid = data.get("uuid")
    entry_type = data.get("type")
    if not isinstance(uuid, str) or not uuid or entry_type not in _ENTRY_TYPES:
        return None

    content = data.get("content")
    message = data.get("message")
    if isinstance(message, dict) and "content" in message:
        content = message["content"]

    parent = data.get("parentUuid")
    timestamp = data.get("timestamp")
    cwd = data.get("cwd")
    session_id = data.get("sessionId")
    return RawEntry(
        uuid=uuid,
        parentUuid=parent if isinstance(parent, str) and parent else None,
        timestamp=timestamp if isinstance(timestamp, str) else "",
        type=entry_type,
        isSidechain=data.get("isSidechain") is True,
        content=content,
        toolUseResult=data.get("toolUseResult"),
        cwd=cwd if isinstance(cwd, str) else None,
        sessionId=session_id if isinstance(session_id, str) else None,
    )


class FileMonitor(EventEmitter):
    """Watch a log root and emit every new entry exactly once per offset."""

    def __init__(
        self,
        projects_dir: Optional[Path] = None,
        *,
        active_threshold_ms: int = config.ACTIVE_THRESHOLD_MS,
        sweep_interval_ms: int = config.SESSION_SWEEP_INTERVAL_MS,
        debounce_ms: int = config.WATCH_DEBOUNCE_MS,
        retry_delay_seconds: float = config.WATCH_RETRY_DELAY_SECONDS,
        start_at_end: bool = config.START_AT_END,
        corrections: Optional[PathCorrections] = None,
        clock: Callable[[], float] = now_ms,
    ):
        super().__init__()
        root = projects_dir if projects_dir is not None else config.PROJECTS_DIR
        self.projects_dir = _resolve_path(root)
        self.active_threshold_ms = active_threshold_ms
        self.sweep_interval_ms = sweep_interval_ms
        self.debounce_ms = debounce_ms
        self.retry_delay_seconds = retry_delay_seconds
        self.start_at_end = start_at_end
        self.corrections = corrections
        self._clock = clock

        self._positions: dict[str, int] = {}
        self._sessions: dict[str, SessionInfo] = {}
        self._was_active: dict[str, bool] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._watch_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._watching = False

    @property
    def is_watching(self) -> bool:
        return self._watching

    def get_position(self, path: Path | str) -> int:
        return self._positions.get(str(_resolve_path(path)), 0)

    # ── Discovery ───────────────────────────────────────────────────

    def _is_session_file(self, path: Path) -> bool:
        return path.suffix == config.SESSION_FILE_SUFFIX and path.parent.parent == self.projects_dir

    def _discover_files(self) -> list[Path]:
        if not self.projects_dir.is_dir():
            return []
        files: list[Path] = []
        try:
            project_dirs = sorted(p for p in self.projects_dir.iterdir() if p.is_dir())
        except OSError as e:
            logger.error(f"Failed to read projects directory {self.projects_dir}: {e}")
            return []
        for project_dir in project_dirs:
            try:
                files.extend(
                    sorted(
                        p for p in project_dir.iterdir()
                        if p.is_file() and p.suffix == config.SESSION_FILE_SUFFIX
                    )
                )
            except OSError as e:
                logger.error(f"Failed to read directory {project_dir}: {e}")
        return files

    # ── Reading ─────────────────────────────────────────────────────

    def _parse_line(self, line: str, path: Path) -> Optional[RawEntry]:
        if not line.strip():
            return None
        try:
            data = json.loads(line)
        except ValueError as e:
            logger.warning(f"Skipping malformed log line in {path.name}: {e}")
            otel.record_line_skipped("malformed")
            return None
        entry = normalize_entry(data)
        if entry is None:
            otel.record_line_skipped("filtered")
        return entry

    async def _read_entries(self, path: Path, offset: int) -> list[RawEntry]:
        key = str(path)
        try:
            chunk = await asyncio.to_thread(read_new_lines, path, offset)
        except FileNotFoundError:
            logger.debug(f"Session file disappeared before read: {path}")
            return []
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return []

        if chunk.reset:
            logger.info(f"{path.name} shrank below offset {offset}; re-reading from start")
        self._positions[key] = chunk.offset

        entries: list[RawEntry] = []
        for line in chunk.lines:
            entry = self._parse_line(line, path)
            if entry is not None:
                entries.append(entry)
        if entries:
            otel.record_entries_ingested(len(entries))
        return entries

    async def read_all(self) -> AsyncIterator[RawEntry]:
        """Yield every entry of every session file from byte 0.

        Each file's end offset is recorded, so a later watch only emits what
        was appended afterwards.
        """
        files = await asyncio.to_thread(self._discover_files)
        for path in files:
            for entry in await self._read_entries(path, 0):
                yield entry

    # ── Sessions ────────────────────────────────────────────────────

    def _is_active(self, session: SessionInfo) -> bool:
        last_ms = session.lastModified.timestamp() * 1000.0
        return self._clock() - last_ms < self.active_threshold_ms

    def _to_active_session(self, session: SessionInfo) -> ActiveSession:
        return ActiveSession(
            sessionId=session.sessionId,
            project=session.project,
            filePath=session.filePath,
            lastModified=session.lastModified,
            isActive=self._is_active(session),
        )

    def _register_session(self, path: Path) -> Optional[SessionInfo]:
        key = str(path)
        existing = self._sessions.get(key)
        if existing is not None:
            return existing
        try:
            stats = path.stat()
        except OSError as e:
            logger.error(f"Failed to register session {path}: {e}")
            return None

        session = SessionInfo(
            sessionId=session_id_from_path(path),
            project=project_from_path(path, self.corrections),
            filePath=key,
            lastModified=datetime.fromtimestamp(float(stats.st_mtime), timezone.utc),
            firstSeen=datetime.now(timezone.utc),
            size=stats.st_size,
        )
        self._sessions[key] = session
        snapshot = self._to_active_session(session)
        self._was_active[key] = snapshot.isActive
        logger.debug(f"Session registered: {session.sessionId} ({session.project})")
        self.emit(SESSION_NEW, snapshot)
        if snapshot.isActive:
            self.emit(SESSION_ACTIVE, snapshot)
        return session

    def _refresh_session(self, path: Path) -> None:
        key = str(path)
        session = self._sessions.get(key)
        if session is None:
            return
        modified = file_modified_datetime(path) or datetime.now(timezone.utc)
        session.lastModified = modified
        try:
            session.size = path.stat().st_size
        except OSError:
            pass

        snapshot = self._to_active_session(session)
        if snapshot.isActive and not self._was_active.get(key, False):
            self.emit(SESSION_ACTIVE, snapshot)
        self._was_active[key] = snapshot.isActive

    def get_active_sessions(self) -> list[ActiveSession]:
        return [self._to_active_session(session) for session in self._sessions.values()]

    def sweep_inactive_sessions(self) -> list[ActiveSession]:
        """Emit ``session:inactive`` for sessions that went quiet since the last sweep."""
        went_inactive: list[ActiveSession] = []
        for key, session in self._sessions.items():
            snapshot = self._to_active_session(session)
            if self._was_active.get(key, False) and not snapshot.isActive:
                self._was_active[key] = False
                went_inactive.append(snapshot)
                logger.debug(f"Session inactive: {session.sessionId}")
                self.emit(SESSION_INACTIVE, snapshot)
        return went_inactive

    # ── Change handlers ─────────────────────────────────────────────

    def _lock_for(self, path: Path) -> asyncio.Lock:
        return self._locks.setdefault(str(path), asyncio.Lock())

    async def handle_file_added(self, path: Path | str) -> int:
        """Register a new session file and emit its entries; returns the count emitted."""
        path = _resolve_path(path)
        async with self._lock_for(path):
            if self._register_session(path) is None:
                return 0
            entries = await self._read_entries(path, self.get_position(path))
            for entry in entries:
                self.emit(ENTRY, entry)
            return len(entries)

    async def handle_file_changed(self, path: Path | str) -> int:
        """Emit entries appended since the recorded offset; returns the count emitted."""
        path = _resolve_path(path)
        async with self._lock_for(path):
            if str(path) not in self._sessions and self._register_session(path) is None:
                return 0
            entries = await self._read_entries(path, self.get_position(path))
            for entry in entries:
                self.emit(ENTRY, entry)
            self._refresh_session(path)
            return len(entries)

    def handle_file_deleted(self, path: Path | str) -> None:
        key = str(_resolve_path(path))
        self._positions.pop(key, None)
        self._was_active.pop(key, None)
        self._locks.pop(key, None)
        session = self._sessions.pop(key, None)
        if session is not None:
            logger.info(f"Session file removed: {session.sessionId}")

    # ── Watch lifecycle ─────────────────────────────────────────────

    async def _scan_existing(self) -> None:
        files = await asyncio.to_thread(self._discover_files)
        for path in files:
            if self.start_at_end and str(path) not in self._positions:
                try:
                    self._positions[str(path)] = path.stat().st_size
                except OSError:
                    continue
            await self.handle_file_added(path)
        logger.info(f"Initial scan registered {len(self._sessions)} sessions under {self.projects_dir}")

    async def start_watching(self) -> None:
        if self._watching:
            logger.warning("FileMonitor is already watching")
            return

        self._watching = True
        self._stop_event = asyncio.Event()
        logger.info(f"Starting file monitoring at {self.projects_dir}")

        await self._scan_existing()
        self._watch_task = asyncio.create_task(self._watch_loop())
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop_watching(self) -> None:
        if not self._watching:
            logger.warning("FileMonitor is not watching")
            return

        self._watching = False
        logger.info("Stopping file monitoring")
        if self._stop_event is not None:
            self._stop_event.set()
        for task in (self._watch_task, self._sweep_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._watch_task = None
        self._sweep_task = None
        self._stop_event = None

        self._positions.clear()
        self._sessions.clear()
        self._was_active.clear()
        self._locks.clear()

    async def _wait_or_stop(self, seconds: float) -> None:
        if self._stop_event is None:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _watch_filter(self, change: Change, path: str) -> bool:
        return path.endswith(config.SESSION_FILE_SUFFIX)

    async def _apply_changes(self, changes: set[tuple[Change, str]]) -> None:
        for change, raw_path in sorted(changes, key=lambda item: item[1]):
            path = _resolve_path(raw_path)
            if not self._is_session_file(path):
                logger.debug(f"Ignoring change outside the session layout: {path}")
                continue
            if change == Change.deleted:
                self.handle_file_deleted(path)
            elif change == Change.added and str(path) not in self._sessions:
                await self.handle_file_added(path)
            else:
                await self.handle_file_changed(path)

    async def _watch_loop(self) -> None:
        root_missing_logged = False
        while self._watching and self._stop_event is not None and not self._stop_event.is_set():
            if not self.projects_dir.is_dir():
                if not root_missing_logged:
                    logger.warning(f"Projects directory {self.projects_dir} does not exist; waiting for it")
                    root_missing_logged = True
                await self._wait_or_stop(self.retry_delay_seconds)
                continue
            if root_missing_logged:
                logger.info(f"Projects directory {self.projects_dir} appeared")
                root_missing_logged = False
                await self._scan_existing()

            try:
                async for changes in awatch(
                    self.projects_dir,
                    watch_filter=self._watch_filter,
                    debounce=self.debounce_ms,
                    stop_event=self._stop_event,
                ):
                    await self._apply_changes(changes)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"File watcher error: {e}")
                self.emit(ERROR, e)
                await self._wait_or_stop(self.retry_delay_seconds)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_ms / 1000.0)
            try:
                self.sweep_inactive_sessions()
            except Exception as e:
                logger.error(f"Session sweep failed: {e}")
