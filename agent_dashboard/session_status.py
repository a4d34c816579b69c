"""Lifecycle status classification for session records."""
from __future__ import annotations

from typing import Optional

from agent_dashboard import config


def compute_is_active(
    mtime_ms: Optional[int],
    awaiting_response: bool,
    now_ms: int,
    active_window_seconds: float | None = None,
) -> bool:
    """A session is active if its log was written recently or it is mid-turn."""
    if awaiting_response:
        return True
    if mtime_ms is None:
        return False
    window = config.ACTIVE_WINDOW_SECONDS if active_window_seconds is None else active_window_seconds
    return (now_ms - mtime_ms) < window * 1000


def session_status(
    is_active: bool,
    updated_at_ms: int,
    now_ms: int,
    recent_window_seconds: float | None = None,
) -> str:
    if is_active:
        return "active"
    window = config.RECENT_WINDOW_SECONDS if recent_window_seconds is None else recent_window_seconds
    if (now_ms - (updated_at_ms or 0)) < window * 1000:
        return "recent"
    return "idle"


def status_of(record, now_ms: int) -> str:
    """Classify a SessionRecord (or anything with isActive/updatedAt)."""
    return session_status(bool(record.isActive), int(record.updatedAt or 0), now_ms)
