"""Snapshot service: recompute, publish and query dashboard state."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from agent_dashboard import config
from agent_dashboard.date_utils import now_ms
from agent_dashboard.dismissals import DismissalStore
from agent_dashboard.display_names import IdentityDocument
from agent_dashboard.live.broadcaster import Broadcaster, Subscription
from agent_dashboard.live.debounce import Debouncer
from agent_dashboard.models import ChatMessage, LiveUpdate, OrgTree, SessionRecord
from agent_dashboard.observability import record_refresh, start_span
from agent_dashboard.org_hierarchy import build_org_tree, load_org_nodes
from agent_dashboard.parsers.sessions import (
    discover_store_dirs,
    merge_store_records,
    order_sessions,
    read_session_messages,
    scan_store,
)

logger = logging.getLogger("agent_dashboard.service")


@dataclass(frozen=True)
class DashboardSnapshot:
    sessions: tuple[SessionRecord, ...]
    org: OrgTree
    generation: int
    generatedAt: int

    def session_list(self) -> list[SessionRecord]:
        return list(self.sessions)

    def live_messages(self) -> list[dict[str, Any]]:
        updates = [
            LiveUpdate(kind="sessions", data=list(self.sessions)),
            LiveUpdate(kind="org", data=self.org),
        ]
        return [u.model_dump(mode="json") for u in updates]


def default_store_dirs() -> list[Path]:
    return discover_store_dirs(config.AGENTS_ROOT, config.SESSION_STORES)


class DashboardService:
    """Single writer of the derived dashboard state.

    Recomputes run one at a time and swap in a complete immutable snapshot;
    readers never observe a partial one.
    """

    def __init__(
        self,
        *,
        store_dirs: Callable[[], list[Path]] = default_store_dirs,
        org_path: Path = config.ORG_PATH,
        dismissals: Optional[DismissalStore] = None,
        identity: Optional[IdentityDocument] = None,
        broadcaster: Optional[Broadcaster] = None,
        debounce_seconds: float = config.DEBOUNCE_MS / 1000,
    ):
        self._store_dirs = store_dirs
        self.org_path = org_path
        self.dismissals = dismissals or DismissalStore(config.DISMISSED_PATH)
        self.identity = identity or IdentityDocument(config.IDENTITY_PATH)
        self.broadcaster = broadcaster or Broadcaster(config.SUBSCRIBER_QUEUE_SIZE)
        self.debouncer = Debouncer(debounce_seconds, self._on_debounced)
        self._lock = asyncio.Lock()
        self._snapshot: Optional[DashboardSnapshot] = None
        self._generation = 0

    # ── Recompute ───────────────────────────────────────────────────

    def store_dirs(self) -> list[Path]:
        return list(self._store_dirs())

    @property
    def snapshot(self) -> Optional[DashboardSnapshot]:
        return self._snapshot

    async def _compute(self) -> DashboardSnapshot:
        now = now_ms()
        store_dirs = self.store_dirs()
        agent_name = await asyncio.to_thread(self.identity.agent_name)
        batches = await asyncio.gather(
            *(asyncio.to_thread(scan_store, d, agent_name=agent_name, now=now) for d in store_dirs)
        )
        dismissed = self.dismissals.keys
        sessions = [s for s in order_sessions(merge_store_records(batches)) if s.key not in dismissed]
        nodes = await asyncio.to_thread(load_org_nodes, self.org_path)
        org = build_org_tree(nodes, sessions, dismissed)
        self._generation += 1
        return DashboardSnapshot(
            sessions=tuple(sessions),
            org=org,
            generation=self._generation,
            generatedAt=now,
        )

    async def refresh(self, trigger: str = "api", broadcast: bool = True) -> DashboardSnapshot:
        """Recompute the snapshot and, unless told otherwise, push it out."""
        started = time.perf_counter()
        async with self._lock:
            with start_span("dashboard.refresh", {"trigger": trigger}):
                try:
                    snapshot = await self._compute()
                except Exception:
                    record_refresh(trigger, "error", (time.perf_counter() - started) * 1000)
                    raise
            self._snapshot = snapshot
            if broadcast:
                self.publish(snapshot)
        record_refresh(trigger, "ok", (time.perf_counter() - started) * 1000)
        logger.debug(f"Refreshed snapshot #{snapshot.generation} ({len(snapshot.sessions)} sessions, trigger={trigger})")
        return snapshot

    def publish(self, snapshot: DashboardSnapshot) -> None:
        for message in snapshot.live_messages():
            self.broadcaster.publish(message, kind=message["kind"])

    async def current(self) -> DashboardSnapshot:
        if self._snapshot is None:
            return await self.refresh(trigger="initial", broadcast=False)
        return self._snapshot

    # ── Change propagation ──────────────────────────────────────────

    def notify_change(self, changes: Iterable[Any] = ()) -> None:
        """Called for every filesystem notification; arms the debounce timer."""
        self.debouncer.trigger()

    async def _on_debounced(self) -> None:
        await self.refresh(trigger="watcher")

    # ── Subscriptions ───────────────────────────────────────────────

    async def subscribe(self) -> Subscription:
        """Register an observer and queue the current full snapshot first."""
        await self.current()
        snapshot = self._snapshot
        subscription = self.broadcaster.subscribe()
        for message in snapshot.live_messages():
            subscription.offer(message)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self.broadcaster.unsubscribe(subscription)

    # ── Queries / mutations ─────────────────────────────────────────

    async def sessions(self) -> list[SessionRecord]:
        snapshot = await self.refresh(trigger="query", broadcast=False)
        return snapshot.session_list()

    async def org_tree(self) -> OrgTree:
        snapshot = await self.refresh(trigger="query", broadcast=False)
        return snapshot.org

    async def messages(self, session_id: str, limit: int = 20) -> Optional[list[ChatMessage]]:
        return await asyncio.to_thread(read_session_messages, self.store_dirs(), session_id, limit)

    async def dismiss(self, key: str) -> bool:
        """Persist a dismissal, then recompute and broadcast immediately.

        Raises DismissalPersistError when the dismissal set cannot be saved.
        """
        added = await self.dismissals.add(key)
        await self.refresh(trigger="dismiss")
        return added

    async def close(self) -> None:
        self.debouncer.cancel()
        await self.debouncer.drain()
