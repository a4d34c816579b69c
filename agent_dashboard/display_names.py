"""Human-readable labels for sessions."""
from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Optional

from agent_dashboard import config

logger = logging.getLogger("agent_dashboard.display_names")

_NAME_PATTERNS = (
    re.compile(r"\*\*Name:?\*\*:?\s*(.+)", re.IGNORECASE),
    re.compile(r"^\s*[-*]?\s*Name\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE),
)


def parse_identity_name(text: str) -> Optional[str]:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(text or "")
        if match:
            name = match.group(1).strip().strip("*_`").strip()
            if name:
                return name
    return None


class IdentityDocument:
    """Cached accessor for the owning agent's name.

    The document is re-read when its mtime changes or after ``invalidate()``.
    """

    def __init__(self, path: Path, default: str = config.DEFAULT_AGENT_NAME):
        self.path = path
        self.default = default
        self._lock = threading.Lock()
        self._cached: Optional[str] = None
        self._cached_mtime: Optional[float] = None
        self._loaded = False

    def invalidate(self) -> None:
        with self._lock:
            self._loaded = False
            self._cached = None
            self._cached_mtime = None

    def _current_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def agent_name(self) -> str:
        mtime = self._current_mtime()
        with self._lock:
            if self._loaded and mtime == self._cached_mtime:
                return self._cached or self.default
            name: Optional[str] = None
            if mtime is not None:
                try:
                    name = parse_identity_name(self.path.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError) as exc:
                    logger.warning("Cannot read identity document %s: %s", self.path, exc)
            self._cached = name
            self._cached_mtime = mtime
            self._loaded = True
            return name or self.default


def _channel_label(channel: Optional[str], key: str) -> str:
    raw = (channel or "").strip()
    if not raw:
        segments = key.split(":")
        raw = segments[2] if len(segments) > 2 else "channel"
    return raw[:1].upper() + raw[1:]


def resolve_display_name(
    *,
    key: str,
    session_type: str,
    agent_name: str,
    session_id: str = "",
    label: Optional[str] = None,
    channel: Optional[str] = None,
    group_channel: Optional[str] = None,
    chat_type: Optional[str] = None,
    stored_display_name: Optional[str] = None,
) -> str:
    """First match wins: label, sub-agent id, channel, main, stored name, key."""
    if label and label.strip():
        return label.strip()
    if session_type == "subagent":
        return f"Sub-agent #{(session_id or key)[:6]}"
    if session_type == "channel":
        suffix_source = (group_channel or chat_type or "").strip()
        suffix = f" ({suffix_source})" if suffix_source else ""
        return f"{agent_name} • {_channel_label(channel, key)}{suffix}"
    if session_type == "main":
        return f"{agent_name} • Main"
    if stored_display_name and stored_display_name.strip():
        return stored_display_name.strip()
    return key
