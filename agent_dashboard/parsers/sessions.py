"""Discover session stores and build normalized SessionRecord models."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from agent_dashboard import config
from agent_dashboard.date_utils import file_mtime_ms, normalize_timestamp, now_ms, to_epoch_ms
from agent_dashboard.display_names import resolve_display_name
from agent_dashboard.models import ChatMessage, SessionMetadata, SessionRecord, TokenCounts
from agent_dashboard.observability import record_parser_failure
from agent_dashboard.parsers.activity import extract_activity
from agent_dashboard.parsers.event_log import MessageRecord, classify_records, read_head, read_tail
from agent_dashboard.session_status import compute_is_active, session_status

logger = logging.getLogger("agent_dashboard.sessions")

_CHANNEL_KINDS = {"discord", "telegram", "signal", "whatsapp"}
_SUBAGENT_KINDS = {"isolated", "subagent"}


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def key_segment(key: str, index: int) -> str:
    segments = (key or "").split(":")
    return segments[index] if len(segments) > index else ""


def infer_session_type(key: str) -> str:
    kind = key_segment(key, 2).lower()
    if kind in _CHANNEL_KINDS:
        return "channel"
    if kind in _SUBAGENT_KINDS:
        return "subagent"
    if kind == "main":
        return "main"
    return "other"


# ── Store discovery ─────────────────────────────────────────────────

def discover_store_dirs(agents_root: Path | None, extra_dirs: Iterable[Path] = ()) -> list[Path]:
    """Return every ``<agents_root>/<agent>/sessions`` dir plus extra stores."""
    found: list[Path] = []
    if agents_root is not None:
        try:
            agent_dirs = sorted(p for p in agents_root.iterdir() if p.is_dir())
        except OSError:
            agent_dirs = []
        for agent_dir in agent_dirs:
            sessions_dir = agent_dir / "sessions"
            if sessions_dir.is_dir():
                found.append(sessions_dir)
    for extra in extra_dirs:
        if extra.is_dir():
            found.append(extra)

    seen: set[Path] = set()
    unique: list[Path] = []
    for path in found:
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        unique.append(path)
    return unique


def load_store_index(store_dir: Path) -> dict[str, dict[str, Any]]:
    """Load ``sessions.json``; missing or unparsable indexes yield ``{}``."""
    index_path = store_dir / config.STORE_INDEX_FILENAME
    try:
        content = index_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning(f"Cannot read session index {index_path}: {exc}")
        return {}

    if not content.strip():
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.warning(f"Failed to parse session index {index_path}: {exc}")
        record_parser_failure("store_index", store=str(store_dir))
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Session index {index_path} is not a mapping")
        record_parser_failure("store_index", store=str(store_dir))
        return {}

    entries: dict[str, dict[str, Any]] = {}
    for key, raw in data.items():
        if isinstance(raw, dict):
            entries[str(key)] = raw
        else:
            record_parser_failure("store_entry", store=str(store_dir))
    return entries


def parse_metadata(key: str, raw: dict[str, Any]) -> SessionMetadata:
    return SessionMetadata(
        key=key,
        sessionId=str(raw.get("sessionId") or ""),
        model=str(raw.get("model") or ""),
        modelProvider=str(raw.get("modelProvider") or ""),
        totalTokens=_int(raw.get("totalTokens")),
        inputTokens=_int(raw.get("inputTokens")),
        outputTokens=_int(raw.get("outputTokens")),
        contextTokens=_int(raw.get("contextTokens")),
        updatedAt=to_epoch_ms(raw.get("updatedAt")),
        label=_str_or_none(raw.get("label")),
        displayName=_str_or_none(raw.get("displayName")),
        spawnedBy=_str_or_none(raw.get("spawnedBy") or raw.get("parentSessionKey")),
        spawnDepth=_int(raw.get("spawnDepth")),
        channel=_str_or_none(raw.get("channel") or raw.get("lastChannel")),
        chatType=_str_or_none(raw.get("chatType")),
        groupChannel=_str_or_none(raw.get("groupChannel")),
        sessionFile=_str_or_none(raw.get("sessionFile")),
        abortedLastRun=bool(raw.get("abortedLastRun", False)),
    )


def resolve_log_path(store_dir: Path, metadata: SessionMetadata) -> Optional[Path]:
    if metadata.sessionFile:
        path = Path(metadata.sessionFile).expanduser()
        return path if path.is_absolute() else store_dir / path
    if metadata.sessionId:
        return store_dir / f"{metadata.sessionId}.jsonl"
    return None


# ── Record construction ─────────────────────────────────────────────

def build_session_record(
    store_dir: Path,
    metadata: SessionMetadata,
    *,
    agent_name: str,
    now: Optional[int] = None,
) -> SessionRecord:
    current = now_ms() if now is None else now
    log_path = resolve_log_path(store_dir, metadata)

    window = read_tail(log_path, config.TAIL_RECORDS)
    prefix = read_head(log_path, config.HEAD_RECORDS)
    activity = extract_activity(window, prefix)

    mtime = file_mtime_ms(log_path)
    updated_at = max(metadata.updatedAt, mtime or 0)
    is_active = compute_is_active(mtime, activity.isThinking, current)

    session_type = infer_session_type(metadata.key)
    parent_key = metadata.spawnedBy if session_type == "subagent" else None

    return SessionRecord(
        key=metadata.key,
        sessionId=metadata.sessionId,
        agentId=key_segment(metadata.key, 1),
        sessionType=session_type,
        parentKey=parent_key,
        displayName=resolve_display_name(
            key=metadata.key,
            session_type=session_type,
            agent_name=agent_name,
            session_id=metadata.sessionId,
            label=metadata.label,
            channel=metadata.channel,
            group_channel=metadata.groupChannel,
            chat_type=metadata.chatType,
            stored_display_name=metadata.displayName,
        ),
        label=metadata.label,
        role=activity.role,
        model=metadata.model,
        modelProvider=metadata.modelProvider,
        tokens=TokenCounts(
            total=metadata.totalTokens,
            input=metadata.inputTokens,
            output=metadata.outputTokens,
            context=metadata.contextTokens,
        ),
        updatedAt=updated_at,
        lastModified=mtime,
        spawnDepth=metadata.spawnDepth,
        channel=metadata.channel,
        chatType=metadata.chatType,
        isActive=is_active,
        status=session_status(is_active, updated_at, current),
        aborted=metadata.abortedLastRun,
        storeDir=str(store_dir),
        activity=activity,
    )


def scan_store(store_dir: Path, *, agent_name: str, now: Optional[int] = None) -> list[SessionRecord]:
    """Build one record per index entry of a single store."""
    records: list[SessionRecord] = []
    for key, raw in load_store_index(store_dir).items():
        try:
            metadata = parse_metadata(key, raw)
            records.append(build_session_record(store_dir, metadata, agent_name=agent_name, now=now))
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Skipping session {key} in {store_dir}: {exc}")
            record_parser_failure("session_record", store=str(store_dir))
    return records


def merge_store_records(batches: Iterable[list[SessionRecord]]) -> list[SessionRecord]:
    """Flatten per-store batches, keeping the freshest record per key."""
    by_key: dict[str, SessionRecord] = {}
    for batch in batches:
        for record in batch:
            existing = by_key.get(record.key)
            if existing is None or record.updatedAt > existing.updatedAt:
                by_key[record.key] = record
    return list(by_key.values())


def order_sessions(records: Iterable[SessionRecord]) -> list[SessionRecord]:
    """Active first, then most recently updated."""
    return sorted(records, key=lambda r: (not r.isActive, -r.updatedAt))


def scan_sessions(store_dirs: Iterable[Path], *, agent_name: str, now: Optional[int] = None) -> list[SessionRecord]:
    """Sequential scan of every store; the service runs stores concurrently."""
    return order_sessions(merge_store_records(scan_store(d, agent_name=agent_name, now=now) for d in store_dirs))


# ── Message history ─────────────────────────────────────────────────

def read_session_messages(store_dirs: Iterable[Path], session_id: str, limit: int = 20) -> Optional[list[ChatMessage]]:
    """Return the last ``limit`` text messages of a session, or None if unknown."""
    for store_dir in store_dirs:
        for key, raw in load_store_index(store_dir).items():
            metadata = parse_metadata(key, raw)
            if metadata.sessionId != session_id:
                continue
            log_path = resolve_log_path(store_dir, metadata)
            messages: list[ChatMessage] = []
            for record in classify_records(read_tail(log_path, config.MESSAGES_TAIL_RECORDS)):
                if not isinstance(record, MessageRecord):
                    continue
                text = record.text()
                if text:
                    messages.append(ChatMessage(
                        role=record.role,
                        text=text,
                        timestamp=normalize_timestamp(record.timestamp),
                    ))
            return messages[-limit:] if limit > 0 else []
    return None
