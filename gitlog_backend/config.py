"""GitLog backend configuration."""
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

# Project root (one level up from gitlog_backend/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Persistent state
DATA_DIR = Path(os.getenv("GITLOG_DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH = Path(os.getenv("GITLOG_DB_PATH", str(DATA_DIR / "gitlog_state.db")))

# Session engine policy
REPO_HISTORY_LIMIT = _env_int("GITLOG_REPO_HISTORY_LIMIT", 20)
REPORT_HISTORY_LIMIT = _env_int("GITLOG_REPORT_HISTORY_LIMIT", 0)  # 0 = unbounded
DIFF_CACHE_MAX_ENTRIES = _env_int("GITLOG_DIFF_CACHE_MAX_ENTRIES", 0)  # 0 = unbounded
COMMIT_WINDOW_DAYS = _env_int("GITLOG_COMMIT_WINDOW_DAYS", 30)
PROGRESS_CHANNEL = os.getenv("GITLOG_PROGRESS_CHANNEL", "report-generation-progress")

# Report generation
LLM_CACHE_TTL_SECONDS = _env_int("GITLOG_LLM_CACHE_TTL_SECONDS", 7 * 24 * 60 * 60)
LLM_TIMEOUT_SECONDS = _env_int("GITLOG_LLM_TIMEOUT_SECONDS", 90)
MAX_REPORT_COMMITS = _env_int("GITLOG_MAX_REPORT_COMMITS", 100)
GIT_BINARY = os.getenv("GITLOG_GIT_BINARY", "git")

# Observability
OTEL_ENABLED = _env_bool("GITLOG_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("GITLOG_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("GITLOG_OTEL_SERVICE_NAME", "gitlog-backend")
PROM_PORT = _env_int("GITLOG_PROM_PORT", 0)

# Server settings
HOST = os.getenv("GITLOG_HOST", "127.0.0.1")
PORT = int(os.getenv("GITLOG_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("GITLOG_FRONTEND_ORIGIN", "http://localhost:1420")
