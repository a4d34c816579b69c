"""Derive a "what is this agent doing right now" snapshot from a log window."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from agent_dashboard.date_utils import normalize_timestamp
from agent_dashboard.models import ActivitySnapshot, MessageRef, ToolCallRef
from agent_dashboard.parsers.event_log import (
    LogRecord,
    MessageRecord,
    SystemRecord,
    ToolResultRecord,
    classify_record,
)
from agent_dashboard.parsers.text_filters import (
    clean_user_text,
    is_meaningful_user_text,
    role_from_system_text,
    role_from_user_text,
    truncate,
)

logger = logging.getLogger("agent_dashboard.activity")

USER_TEXT_LIMIT = 300
TASK_TEXT_LIMIT = 400
ASSISTANT_TEXT_LIMIT = 300
RECENT_TOOL_LIMIT = 3


def _as_records(window: Iterable[Any]) -> list[LogRecord]:
    records: list[LogRecord] = []
    for item in window or []:
        if isinstance(item, dict):
            records.append(classify_record(item))
        elif hasattr(item, "kind"):
            records.append(item)
    return records


def is_awaiting_response(records: list[LogRecord]) -> bool:
    """True when the window ends on a user turn or a tool result."""
    if not records:
        return False
    last = records[-1]
    if isinstance(last, ToolResultRecord):
        return True
    return isinstance(last, MessageRecord) and last.role == "user"


def infer_role(prefix: list[LogRecord]) -> Optional[str]:
    """Look for a role declaration in system prompts, then early user turns."""
    for record in prefix:
        if isinstance(record, SystemRecord):
            text = record.text
        elif isinstance(record, MessageRecord) and record.role == "system":
            text = record.text()
        else:
            continue
        role = role_from_system_text(text)
        if role:
            return role

    for record in prefix:
        if isinstance(record, MessageRecord) and record.role == "user":
            role = role_from_user_text(record.text())
            if role:
                return role
    return None


def extract_activity(window: Iterable[Any], prefix_window: Iterable[Any] = ()) -> ActivitySnapshot:
    """Build an ActivitySnapshot. Never raises; bad input gives an empty snapshot."""
    try:
        return _extract(_as_records(window), _as_records(prefix_window))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Activity extraction failed: %s", exc)
        return ActivitySnapshot()


def _extract(records: list[LogRecord], prefix: list[LogRecord]) -> ActivitySnapshot:
    last_user: MessageRef | None = None
    last_assistant: MessageRef | None = None
    current_task: str | None = None
    tool_history: list[ToolCallRef] = []

    for record in records:
        if not isinstance(record, MessageRecord):
            continue
        timestamp = normalize_timestamp(record.timestamp)

        if record.role == "user":
            cleaned = clean_user_text(record.text())
            if is_meaningful_user_text(cleaned):
                last_user = MessageRef(text=truncate(cleaned, USER_TEXT_LIMIT), timestamp=timestamp)
                current_task = truncate(cleaned, TASK_TEXT_LIMIT)

        elif record.role == "assistant":
            text = record.text()
            if text:
                last_assistant = MessageRef(text=truncate(text, ASSISTANT_TEXT_LIMIT), timestamp=timestamp)
            for part in record.tool_calls():
                tool_history.append(ToolCallRef(name=part.name, timestamp=timestamp))

    recent_tools = list(reversed(tool_history[-RECENT_TOOL_LIMIT:]))
    created_at = normalize_timestamp(prefix[0].timestamp) if prefix else None

    return ActivitySnapshot(
        lastUserMsg=last_user,
        lastAssistantMsg=last_assistant,
        lastToolCall=recent_tools[0] if recent_tools else None,
        recentToolCalls=recent_tools,
        currentTask=current_task,
        isThinking=is_awaiting_response(records),
        createdAt=created_at,
        role=infer_role(prefix),
    )
