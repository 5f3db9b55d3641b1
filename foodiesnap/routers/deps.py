"""Shared router dependencies."""
from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..clients.backend_client import BackendClient
from ..services.offline_context import OfflineContext


def get_offline_context(request: Request) -> OfflineContext:
    context = getattr(request.app.state, "offline", None)
    if context is None or not context.ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Offline support is not ready")
    return context


def get_backend_client(request: Request) -> BackendClient:
    client = getattr(request.app.state, "backend_client", None)
    if client is None:
        client = BackendClient()
        request.app.state.backend_client = client
    return client


__all__ = ["get_backend_client", "get_offline_context"]
