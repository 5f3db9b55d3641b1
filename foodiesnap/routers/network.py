"""Connectivity state routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas import ConnectivityEventRequest, NetworkStateResponse
from ..services.connectivity import ManualConnectivitySource, RawConnectivityEvent
from ..services.network_monitor import NetworkState
from ..services.offline_context import OfflineContext
from .deps import get_offline_context

router = APIRouter(prefix="/network", tags=["network"])


def _to_response(state: NetworkState) -> NetworkStateResponse:
    return NetworkStateResponse(
        **state.as_dict(),
        is_online=state.is_connected and state.is_internet_reachable,
    )


@router.get("/state", response_model=NetworkStateResponse)
async def read_network_state(context: OfflineContext = Depends(get_offline_context)) -> NetworkStateResponse:
    return _to_response(context.monitor.get_current_state())


@router.post("/events", response_model=NetworkStateResponse)
async def report_connectivity(
    payload: ConnectivityEventRequest,
    context: OfflineContext = Depends(get_offline_context),
) -> NetworkStateResponse:
    """Accept a platform connectivity reading from the client."""

    source = context.source
    if not isinstance(source, ManualConnectivitySource):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Connectivity is measured by the server-side probe",
        )
    await source.emit(
        RawConnectivityEvent(
            is_connected=payload.is_connected,
            is_internet_reachable=payload.is_internet_reachable,
            type=payload.type,
            details=payload.details,
        )
    )
    return _to_response(context.monitor.get_current_state())


__all__ = ["router"]
