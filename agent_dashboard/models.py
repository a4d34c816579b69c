"""Pydantic models shared by the registry, org merger and API."""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

SessionType = Literal["main", "channel", "subagent", "other"]
SessionStatus = Literal["active", "recent", "idle"]


# ── Activity models ─────────────────────────────────────────────────

class MessageRef(BaseModel):
    text: str
    timestamp: Optional[str] = None


class ToolCallRef(BaseModel):
    name: str
    timestamp: Optional[str] = None


class ActivitySnapshot(BaseModel):
    lastUserMsg: Optional[MessageRef] = None
    lastAssistantMsg: Optional[MessageRef] = None
    lastToolCall: Optional[ToolCallRef] = None
    recentToolCalls: list[ToolCallRef] = Field(default_factory=list)
    currentTask: Optional[str] = None
    isThinking: bool = False  # awaiting the agent's next turn
    createdAt: Optional[str] = None
    role: Optional[str] = None


class ChatMessage(BaseModel):
    role: str
    text: str
    timestamp: Optional[str] = None


# ── Session models ──────────────────────────────────────────────────

class TokenCounts(BaseModel):
    total: int = 0
    input: int = 0
    output: int = 0
    context: int = 0


class SessionMetadata(BaseModel):
    key: str
    sessionId: str = ""
    model: str = ""
    modelProvider: str = ""
    totalTokens: int = 0
    inputTokens: int = 0
    outputTokens: int = 0
    contextTokens: int = 0
    updatedAt: int = 0  # epoch ms
    label: Optional[str] = None
    displayName: Optional[str] = None
    spawnedBy: Optional[str] = None
    spawnDepth: int = 0
    channel: Optional[str] = None
    chatType: Optional[str] = None
    groupChannel: Optional[str] = None
    sessionFile: Optional[str] = None
    abortedLastRun: bool = False


class SessionRecord(BaseModel):
    key: str
    sessionId: str = ""
    agentId: str = ""
    sessionType: SessionType = "other"
    parentKey: Optional[str] = None
    displayName: str = ""
    label: Optional[str] = None
    role: Optional[str] = None
    model: str = ""
    modelProvider: str = ""
    tokens: TokenCounts = Field(default_factory=TokenCounts)
    updatedAt: int = 0  # epoch ms, max(metadata, log mtime)
    lastModified: Optional[int] = None  # log mtime, epoch ms
    spawnDepth: int = 0
    channel: Optional[str] = None
    chatType: Optional[str] = None
    isActive: bool = False
    status: SessionStatus = "idle"
    aborted: bool = False
    storeDir: str = ""
    activity: ActivitySnapshot = Field(default_factory=ActivitySnapshot)


# ── Org models ──────────────────────────────────────────────────────

class OrgNode(BaseModel):
    id: str
    name: str = ""
    role: str = ""
    specialty: str = ""
    emoji: Optional[str] = None
    type: str = "agent"  # "agent" | "human"
    agentKey: Optional[str] = None
    parentId: Optional[str] = None
    # Live overlay, filled by the org merger
    isActive: bool = False
    sessionKey: Optional[str] = None
    model: Optional[str] = None
    totalTokens: int = 0
    updatedAt: Optional[int] = None
    currentTask: Optional[str] = None
    lastToolCall: Optional[str] = None
    recentTools: list[str] = Field(default_factory=list)
    matchedBy: Optional[str] = None  # "agentKey" | "label" | "agentId"


class OrgTree(BaseModel):
    nodes: list[OrgNode] = Field(default_factory=list)
    sessions: list[SessionRecord] = Field(default_factory=list)


# ── Live update models ──────────────────────────────────────────────

class LiveUpdate(BaseModel):
    kind: Literal["sessions", "org"]
    data: Any
