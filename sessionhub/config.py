"""SessionHub Backend Configuration."""
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

# Transcript store written by the agent tooling (one subdirectory per project)
PROJECTS_DIR = Path(
    os.getenv("SESSIONHUB_PROJECTS_DIR", str(Path.home() / ".claude" / "projects"))
).expanduser()
TRANSCRIPT_SUFFIX = ".jsonl"

# Catalog tuning
DEFAULT_LIST_LIMIT = _env_int("SESSIONHUB_LIST_LIMIT", 20)
MAX_HISTORY_ITEMS = _env_int("SESSIONHUB_MAX_HISTORY_ITEMS", 200)
SUMMARY_MAX_CHARS = _env_int("SESSIONHUB_SUMMARY_MAX_CHARS", 50)
BACKGROUND_SESSION_PREFIX = os.getenv("SESSIONHUB_BACKGROUND_SESSION_PREFIX", "agent-")

# Logging
LOG_LEVEL = os.getenv("SESSIONHUB_LOG_LEVEL", "INFO").upper()

# Observability
OTEL_ENABLED = _env_bool("SESSIONHUB_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SESSIONHUB_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SESSIONHUB_OTEL_SERVICE_NAME", "sessionhub-backend")
PROM_PORT = _env_int("SESSIONHUB_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("SESSIONHUB_HOST", "127.0.0.1")
PORT = int(os.getenv("SESSIONHUB_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("SESSIONHUB_FRONTEND_ORIGIN", "http://localhost:1420")
