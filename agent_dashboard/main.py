"""Agent Dashboard FastAPI backend: application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_dashboard import config
from agent_dashboard.live.file_watcher import file_watcher
from agent_dashboard.observability import initialize as initialize_observability, shutdown as shutdown_observability
from agent_dashboard.routers.api import dashboard_router
from agent_dashboard.services.dashboard import DashboardService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agent_dashboard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Agent dashboard starting up")
    initialize_observability(app)

    # 1. Build the snapshot service and the first snapshot
    service = DashboardService()
    app.state.dashboard = service
    snapshot = await service.refresh(trigger="startup", broadcast=False)
    logger.info(f"Initial snapshot: {len(snapshot.sessions)} sessions, {len(snapshot.org.nodes)} org nodes")

    # 2. Start the store watcher
    if config.WATCHER_ENABLED:
        await file_watcher.start(service.store_dirs, service.notify_change, agents_root=config.AGENTS_ROOT)

    yield

    logger.info("Agent dashboard shutting down")
    await file_watcher.stop()
    await service.close()
    shutdown_observability(app)


app = FastAPI(
    title="Agent Dashboard API",
    description="Live session and org-chart state for autonomous agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        f"http://localhost:{config.PORT}",
        f"http://127.0.0.1:{config.PORT}",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dashboard_router)


def run() -> None:
    import uvicorn

    uvicorn.run("agent_dashboard.main:app", host=config.HOST, port=config.PORT)
