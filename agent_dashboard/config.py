"""Agent Dashboard configuration."""
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


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


def _env_paths(name: str) -> list[Path]:
    """Split an os.pathsep separated list of directories."""
    value = os.getenv(name) or ""
    return [Path(part.strip()).expanduser() for part in value.split(os.pathsep) if part.strip()]


# Agent runtime layout
OPENCLAW_HOME = _env_path("AGENT_DASHBOARD_OPENCLAW_HOME", Path.home() / ".openclaw")
AGENTS_ROOT = _env_path("AGENT_DASHBOARD_AGENTS_ROOT", OPENCLAW_HOME / "agents")
# Extra session store directories watched in addition to <AGENTS_ROOT>/*/sessions
SESSION_STORES = _env_paths("AGENT_DASHBOARD_SESSION_STORES")
STORE_INDEX_FILENAME = "sessions.json"

# Documents owned by the dashboard
DASHBOARD_DIR = _env_path("AGENT_DASHBOARD_DATA_DIR", OPENCLAW_HOME / "dashboard")
ORG_PATH = _env_path("AGENT_DASHBOARD_ORG_PATH", DASHBOARD_DIR / "org.json")
DISMISSED_PATH = _env_path("AGENT_DASHBOARD_DISMISSED_PATH", DASHBOARD_DIR / "dismissed.json")
IDENTITY_PATH = _env_path("AGENT_DASHBOARD_IDENTITY_PATH", OPENCLAW_HOME / "workspace" / "IDENTITY.md")
DEFAULT_AGENT_NAME = os.getenv("AGENT_DASHBOARD_DEFAULT_AGENT_NAME", "Agent")

# Log windows
TAIL_RECORDS = _env_int("AGENT_DASHBOARD_TAIL_RECORDS", 60)
HEAD_RECORDS = _env_int("AGENT_DASHBOARD_HEAD_RECORDS", 20)
MESSAGES_TAIL_RECORDS = _env_int("AGENT_DASHBOARD_MESSAGES_TAIL_RECORDS", 200)

# Status windows
ACTIVE_WINDOW_SECONDS = _env_float("AGENT_DASHBOARD_ACTIVE_WINDOW_SECONDS", 30.0)
RECENT_WINDOW_SECONDS = _env_float("AGENT_DASHBOARD_RECENT_WINDOW_SECONDS", 300.0)

# Live updates
DEBOUNCE_MS = _env_int("AGENT_DASHBOARD_DEBOUNCE_MS", 300)
SUBSCRIBER_QUEUE_SIZE = _env_int("AGENT_DASHBOARD_SUBSCRIBER_QUEUE_SIZE", 8)
SSE_KEEPALIVE_SECONDS = _env_float("AGENT_DASHBOARD_SSE_KEEPALIVE_SECONDS", 15.0)
WATCHER_ENABLED = _env_bool("AGENT_DASHBOARD_WATCHER_ENABLED", True)

# Observability
OTEL_ENABLED = _env_bool("AGENT_DASHBOARD_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("AGENT_DASHBOARD_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("AGENT_DASHBOARD_OTEL_SERVICE_NAME", "agent-dashboard")
PROM_PORT = _env_int("AGENT_DASHBOARD_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("AGENT_DASHBOARD_HOST", "127.0.0.1")
PORT = _env_int("AGENT_DASHBOARD_PORT", 4242)

# CORS
FRONTEND_ORIGIN = os.getenv("AGENT_DASHBOARD_FRONTEND_ORIGIN", "http://localhost:4242")
