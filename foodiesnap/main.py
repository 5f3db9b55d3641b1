"""FastAPI application exposing the offline queue, cache and realtime surface."""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .clients.backend_client import BackendClient
from .config import get_settings
from .database import init_db
from .routers import cache_router, network_router, offline_router, realtime_router
from .services.action_handlers import build_default_handlers
from .services.offline_context import OfflineContext, build_offline_context
from .services.realtime import offline_updates_manager

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.api_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (offline_router, network_router, cache_router, realtime_router):
    app.include_router(router)


def _current_context() -> OfflineContext | None:
    return getattr(app.state, "offline", None)


@app.on_event("startup")
async def start_offline_support() -> None:
    """Prepare storage, then load the queue and start watching connectivity."""

    if settings.offline_storage_backend.strip().lower() == "sql":
        try:
            init_db()
        except Exception:
            logger.exception("Could not create the offline key/value table")
            raise

    backend = BackendClient()
    context = build_offline_context(
        settings,
        handlers=build_default_handlers(backend),
        broadcaster=offline_updates_manager,
    )
    await context.init()
    app.state.backend_client = backend
    app.state.offline = context


@app.on_event("shutdown")
async def stop_offline_support() -> None:
    context = _current_context()
    if context is None:
        return
    await context.dispose()
    app.state.offline = None
    logger.info("Offline support stopped with %d actions still queued", len(context.queue))


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": settings.app_name, "version": settings.api_version}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, object]:
    context = _current_context()
    if context is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "online": context.monitor.is_online(),
        "queued_actions": len(context.queue),
        "draining": context.processor.is_draining,
        "websocket_clients": offline_updates_manager.connection_count,
    }
