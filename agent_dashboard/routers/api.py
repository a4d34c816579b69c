"""API router: session list, org tree, message history, dismissals, SSE."""
from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from agent_dashboard import config
from agent_dashboard.dismissals import DismissalPersistError
from agent_dashboard.live.file_watcher import file_watcher
from agent_dashboard.models import ChatMessage, OrgTree, SessionRecord

logger = logging.getLogger("agent_dashboard.api")

dashboard_router = APIRouter(prefix="/api", tags=["dashboard"])


def _get_service(request: Request):
    service = getattr(request.app.state, "dashboard", None)
    if not service:
        raise HTTPException(status_code=503, detail="Dashboard service not initialized")
    return service


def format_sse(message: dict) -> str:
    return f"data: {json.dumps(message)}\n\n"


@dashboard_router.get("/sessions", response_model=list[SessionRecord])
async def list_sessions(request: Request):
    """Current sessions, active first then most recently updated."""
    service = _get_service(request)
    return await service.sessions()


@dashboard_router.get("/sessions/{session_id}/messages", response_model=list[ChatMessage])
async def get_session_messages(request: Request, session_id: str, limit: int = Query(20, ge=1, le=200)):
    """Recent user/assistant messages for one session."""
    service = _get_service(request)
    messages = await service.messages(session_id, limit)
    if messages is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return messages


@dashboard_router.get("/org", response_model=OrgTree)
async def get_org(request: Request):
    """Declared org hierarchy enriched with live session state."""
    service = _get_service(request)
    return await service.org_tree()


@dashboard_router.post("/dismiss/{key:path}")
async def dismiss_session(request: Request, key: str):
    """Hide a session key; idempotent."""
    service = _get_service(request)
    try:
        added = await service.dismiss(key)
    except DismissalPersistError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok", "key": key, "added": added}


@dashboard_router.get("/events")
async def live_events(request: Request):
    """SSE stream: full snapshot on connect, then every recompute."""
    service = _get_service(request)
    subscription = await service.subscribe()

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await subscription.get(timeout=config.SSE_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(message)
        finally:
            service.unsubscribe(subscription)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@dashboard_router.get("/health")
async def health(request: Request):
    """Watcher and snapshot status."""
    service = _get_service(request)
    snapshot = service.snapshot
    return {
        "status": "ok",
        "watcher": "running" if file_watcher.is_running else "stopped",
        "watchedStores": [str(p) for p in file_watcher.watched],
        "storeDirs": [str(p) for p in service.store_dirs()],
        "subscribers": len(service.broadcaster),
        "generation": snapshot.generation if snapshot else 0,
        "generatedAt": snapshot.generatedAt if snapshot else None,
    }
