"""Read append-only JSONL session logs and classify their records."""
from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union

logger = logging.getLogger("agent_dashboard.event_log")

_TOOL_RESULT_ROLES = {"toolresult", "tool_result", "tool"}
_TOOL_RESULT_TYPES = {"tool_result", "toolresult"}
_TOOL_CALL_PART_TYPES = {"toolcall", "tool_use", "tooluse", "function_call"}


def _iter_records(path: Path) -> Iterator[dict[str, Any]]:
    """Yield every well-formed JSON object line; bad lines are dropped."""
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            raw = line.strip()
            if not raw:
                continue
            try:
                record = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict):
                yield record


def read_tail(path: Path | None, max_records: Optional[int] = None) -> list[dict[str, Any]]:
    """Return the last ``max_records`` well-formed records (all when None).

    Missing, unreadable and empty files yield an empty list.
    """
    if path is None:
        return []
    try:
        if max_records is None:
            return list(_iter_records(path))
        if max_records <= 0:
            return []
        return list(deque(_iter_records(path), maxlen=max_records))
    except OSError as exc:
        logger.debug("Cannot read event log %s: %s", path, exc)
        return []


def read_head(path: Path | None, max_records: int) -> list[dict[str, Any]]:
    """Return the first ``max_records`` well-formed records."""
    if path is None or max_records <= 0:
        return []
    records: list[dict[str, Any]] = []
    try:
        for record in _iter_records(path):
            records.append(record)
            if len(records) >= max_records:
                break
    except OSError as exc:
        logger.debug("Cannot read event log %s: %s", path, exc)
        return []
    return records


# ── Record variants ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ContentPart:
    type: str
    text: str = ""
    name: str = ""


@dataclass(frozen=True)
class MessageRecord:
    role: str
    parts: tuple[ContentPart, ...] = ()
    timestamp: Any = None
    kind: str = field(default="message", init=False)

    def text(self) -> str:
        return " ".join(p.text for p in self.parts if p.type == "text" and p.text).strip()

    def tool_calls(self) -> list[ContentPart]:
        return [p for p in self.parts if p.type == "tool_call" and p.name]


@dataclass(frozen=True)
class ToolResultRecord:
    tool_name: str = ""
    timestamp: Any = None
    kind: str = field(default="tool_result", init=False)


@dataclass(frozen=True)
class SystemRecord:
    text: str = ""
    timestamp: Any = None
    kind: str = field(default="system", init=False)


@dataclass(frozen=True)
class UnknownRecord:
    type: str = ""
    timestamp: Any = None
    kind: str = field(default="unknown", init=False)


LogRecord = Union[MessageRecord, ToolResultRecord, SystemRecord, UnknownRecord]


def _parse_part(raw: Any) -> ContentPart | None:
    if isinstance(raw, str):
        return ContentPart(type="text", text=raw)
    if not isinstance(raw, dict):
        return None
    part_type = str(raw.get("type") or "").strip()
    lowered = part_type.lower()
    if lowered == "text":
        text = raw.get("text")
        return ContentPart(type="text", text=text if isinstance(text, str) else "")
    if lowered in _TOOL_CALL_PART_TYPES:
        name = raw.get("name")
        if not isinstance(name, str):
            function = raw.get("function")
            name = function.get("name") if isinstance(function, dict) else ""
        return ContentPart(type="tool_call", name=(name or "").strip())
    if lowered in _TOOL_RESULT_TYPES:
        return ContentPart(type="tool_result")
    return ContentPart(type=lowered or "unknown")


def _parse_parts(content: Any) -> tuple[ContentPart, ...]:
    if isinstance(content, str):
        return (ContentPart(type="text", text=content),)
    if isinstance(content, list):
        parts = [_parse_part(item) for item in content]
        return tuple(p for p in parts if p is not None)
    return ()


def _raw_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return " ".join(p.text for p in _parse_parts(value) if p.type == "text" and p.text)
    return ""


def classify_record(raw: dict[str, Any]) -> LogRecord:
    """Map a raw JSON record onto one of the closed record variants."""
    record_type = str(raw.get("type") or "").strip()
    lowered = record_type.lower()
    timestamp = raw.get("timestamp")

    if lowered in _TOOL_RESULT_TYPES:
        return ToolResultRecord(tool_name=str(raw.get("toolName") or raw.get("name") or ""), timestamp=timestamp)

    message = raw.get("message")
    if lowered in {"message", "user", "assistant"} and isinstance(message, dict):
        role = str(message.get("role") or lowered).strip()
        if role.lower() in _TOOL_RESULT_ROLES:
            return ToolResultRecord(
                tool_name=str(message.get("toolName") or message.get("name") or ""),
                timestamp=timestamp,
            )
        parts = _parse_parts(message.get("content"))
        if role.lower() == "user" and parts and all(p.type == "tool_result" for p in parts):
            return ToolResultRecord(timestamp=timestamp)
        return MessageRecord(role=role.lower(), parts=parts, timestamp=timestamp)

    if lowered == "system":
        text = _raw_text(raw.get("content")) or _raw_text(raw.get("text"))
        return SystemRecord(text=text, timestamp=timestamp)

    return UnknownRecord(type=record_type, timestamp=timestamp)


def classify_records(raw_records: list[dict[str, Any]]) -> list[LogRecord]:
    return [classify_record(raw) for raw in raw_records]
