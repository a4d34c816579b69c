"""Declared org hierarchy loading and live-session reconciliation.

The merger only enriches the declared nodes; sessions that no node claims
are never turned into extra tree members. Matching runs from scratch on
every recompute, in this order:

1. ``agentKey``: exact session key declared on the node.
2. ``label``: node name equals a session label (most recent session wins).
3. ``agentId``: node id equals the agent segment of a session key
   (``agent:<id>:...``; most recent session wins).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import yaml

from agent_dashboard.models import OrgNode, OrgTree, SessionRecord
from agent_dashboard.parsers.sessions import key_segment

logger = logging.getLogger("agent_dashboard.org")


class OrgConfigError(ValueError):
    """The declared hierarchy is not a single acyclic tree."""


def validate_org_nodes(nodes: list[OrgNode]) -> None:
    if not nodes:
        return
    ids = [n.id for n in nodes]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise OrgConfigError(f"Duplicate org node ids: {', '.join(duplicates)}")

    roots = [n.id for n in nodes if not n.parentId]
    if len(roots) != 1:
        raise OrgConfigError(f"Org hierarchy needs exactly one root, found {len(roots)}")

    by_id = {n.id: n for n in nodes}
    for node in nodes:
        if node.parentId and node.parentId not in by_id:
            raise OrgConfigError(f"Org node {node.id} references unknown parent {node.parentId}")

    for node in nodes:
        seen: set[str] = set()
        current: Optional[OrgNode] = node
        while current is not None and current.parentId:
            if current.id in seen:
                raise OrgConfigError(f"Org hierarchy has a cycle through {current.id}")
            seen.add(current.id)
            current = by_id.get(current.parentId)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_org_document(data: Any) -> list[OrgNode]:
    raw_nodes = data.get("nodes") if isinstance(data, dict) else data
    if not isinstance(raw_nodes, list):
        return []
    nodes: list[OrgNode] = []
    for raw in raw_nodes:
        if not isinstance(raw, dict) or not str(raw.get("id") or "").strip():
            continue
        try:
            nodes.append(OrgNode(
                id=str(raw["id"]).strip(),
                name=str(raw.get("name") or raw["id"]),
                role=str(raw.get("role") or ""),
                specialty=str(raw.get("specialty") or ""),
                emoji=_optional_text(raw.get("emoji")),
                type=str(raw.get("type") or "agent"),
                agentKey=_optional_text(raw.get("agentKey")),
                parentId=_optional_text(raw.get("parentId")),
            ))
        except Exception as e:
            logger.error(f"Failed to load org node {raw.get('id')}: {e}")
    return nodes


def load_org_nodes(path: Path) -> list[OrgNode]:
    """Load the declared hierarchy; any problem yields an empty hierarchy."""
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            return []
        nodes = parse_org_document(yaml.safe_load(content))
        validate_org_nodes(nodes)
        return nodes
    except OrgConfigError as e:
        logger.error(f"Invalid org hierarchy in {path}: {e}")
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load org hierarchy {path}: {e}")
    return []


# ── Matching strategies ─────────────────────────────────────────────

def _most_recent(candidates: list[SessionRecord]) -> Optional[SessionRecord]:
    if not candidates:
        return None
    return max(candidates, key=lambda s: s.updatedAt)


def match_by_agent_key(node: OrgNode, sessions: list[SessionRecord]) -> Optional[SessionRecord]:
    if not node.agentKey:
        return None
    for session in sessions:
        if session.key == node.agentKey:
            return session
    return None


def match_by_label(node: OrgNode, sessions: list[SessionRecord]) -> Optional[SessionRecord]:
    name = (node.name or "").strip().casefold()
    if not name:
        return None
    return _most_recent([s for s in sessions if s.label and s.label.strip().casefold() == name])


def match_by_agent_id(node: OrgNode, sessions: list[SessionRecord]) -> Optional[SessionRecord]:
    return _most_recent([s for s in sessions if key_segment(s.key, 1) == node.id])


MATCH_STRATEGIES: list[tuple[str, Callable[[OrgNode, list[SessionRecord]], Optional[SessionRecord]]]] = [
    ("agentKey", match_by_agent_key),
    ("label", match_by_label),
    ("agentId", match_by_agent_id),
]


def match_session(node: OrgNode, sessions: list[SessionRecord]) -> tuple[Optional[str], Optional[SessionRecord]]:
    if node.type == "human":
        return None, None
    for strategy, matcher in MATCH_STRATEGIES:
        session = matcher(node, sessions)
        if session is not None:
            return strategy, session
    return None, None


def _overlay(node: OrgNode, strategy: Optional[str], session: Optional[SessionRecord]) -> OrgNode:
    base = node.model_copy(update={
        "isActive": False,
        "sessionKey": None,
        "model": None,
        "totalTokens": 0,
        "updatedAt": None,
        "currentTask": None,
        "lastToolCall": None,
        "recentTools": [],
        "matchedBy": None,
    })
    if session is None:
        return base
    activity = session.activity
    return base.model_copy(update={
        "isActive": session.isActive,
        "sessionKey": session.key,
        "model": session.model or None,
        "totalTokens": session.tokens.total,
        "updatedAt": session.updatedAt or None,
        "currentTask": activity.currentTask,
        "lastToolCall": activity.lastToolCall.name if activity.lastToolCall else None,
        "recentTools": [t.name for t in activity.recentToolCalls],
        "matchedBy": strategy,
    })


def merge_org(
    nodes: Iterable[OrgNode],
    sessions: Iterable[SessionRecord],
    dismissed: Iterable[str] = (),
) -> list[OrgNode]:
    """Return the declared nodes, each enriched with its best live session."""
    hidden = set(dismissed)
    candidates = [s for s in sessions if s.key not in hidden]
    merged: list[OrgNode] = []
    for node in nodes:
        strategy, session = match_session(node, candidates)
        merged.append(_overlay(node, strategy, session))
    return merged


def build_org_tree(
    nodes: Iterable[OrgNode],
    sessions: list[SessionRecord],
    dismissed: Iterable[str] = (),
) -> OrgTree:
    return OrgTree(nodes=merge_org(nodes, sessions, dismissed), sessions=list(sessions))
