"""toolstream configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


# Log tree written by the agent: one directory per project, one file per session
PROJECTS_DIR = _env_path("TOOLSTREAM_PROJECTS_DIR", Path.home() / ".claude" / "projects")
SESSION_FILE_SUFFIX = ".jsonl"

# User corrections for project tokens the codec cannot decode
PATH_CORRECTIONS_FILE = _env_path(
    "TOOLSTREAM_PATH_CORRECTIONS_FILE",
    Path.home() / ".config" / "toolstream" / "path-corrections.json",
)

# Session liveness
ACTIVE_THRESHOLD_MS = _env_int("TOOLSTREAM_ACTIVE_THRESHOLD_MS", 60_000)
SESSION_SWEEP_INTERVAL_MS = _env_int("TOOLSTREAM_SESSION_SWEEP_MS", 30_000)

# Correlation
CORRELATION_TIMEOUT_MS = _env_int("TOOLSTREAM_CORRELATION_TIMEOUT_MS", 300_000)
CORRELATION_SWEEP_INTERVAL_MS = _env_int("TOOLSTREAM_CORRELATION_SWEEP_MS", 60_000)

# Watcher tuning
WATCH_DEBOUNCE_MS = _env_int("TOOLSTREAM_WATCH_DEBOUNCE_MS", 200)
WATCH_RETRY_DELAY_SECONDS = _env_int("TOOLSTREAM_WATCH_RETRY_DELAY_SECONDS", 2)
START_AT_END = _env_bool("TOOLSTREAM_START_AT_END", False)
BACKFILL_ON_STARTUP = _env_bool("TOOLSTREAM_BACKFILL_ON_STARTUP", True)

# In-memory buffers served by the API
RECENT_RECORD_LIMIT = _env_int("TOOLSTREAM_RECENT_RECORD_LIMIT", 500)
EVENT_QUEUE_SIZE = _env_int("TOOLSTREAM_EVENT_QUEUE_SIZE", 1000)

# Observability
OTEL_ENABLED = _env_bool("TOOLSTREAM_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("TOOLSTREAM_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("TOOLSTREAM_OTEL_SERVICE_NAME", "toolstream")
PROM_PORT = _env_int("TOOLSTREAM_PROM_PORT", 9464)

# Logging
LOG_LEVEL = os.getenv("TOOLSTREAM_LOG_LEVEL", "INFO").upper()

# CORS
FRONTEND_ORIGIN = os.getenv("TOOLSTREAM_FRONTEND_ORIGIN", "http://localhost:3000")
