"""Realtime subscription routes and the offline updates WebSocket."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from ..schemas import RealtimeEventRequest, RealtimeEventResponse, SubscriptionRequest, SubscriptionResponse
from ..services.offline_context import OfflineContext
from ..services.realtime import (
    Subscription,
    conversation_channel,
    friend_request_channel,
    message_channel,
    offline_updates_manager,
)
from .deps import get_offline_context

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

_CHANNEL_BUILDERS = {
    "messages": message_channel,
    "friend-requests": friend_request_channel,
    "conversations": conversation_channel,
}


def _to_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        name=subscription.name,
        state=subscription.state.value,
        events_received=subscription.events_received,
    )


@router.get("/realtime/subscriptions", response_model=list[str])
async def list_subscriptions(context: OfflineContext = Depends(get_offline_context)) -> list[str]:
    return context.subscriptions.active_subscriptions()


@router.post("/realtime/subscriptions", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def open_subscription(
    payload: SubscriptionRequest,
    context: OfflineContext = Depends(get_offline_context),
) -> SubscriptionResponse:
    name, bindings = _CHANNEL_BUILDERS[payload.kind](payload.target_id)
    subscription = await context.subscriptions.subscribe(name, bindings)
    return _to_response(subscription)


@router.delete("/realtime/subscriptions/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def close_subscription(name: str, context: OfflineContext = Depends(get_offline_context)) -> Response:
    if not await context.subscriptions.unsubscribe(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/realtime/events", response_model=RealtimeEventResponse)
async def receive_event(
    payload: RealtimeEventRequest,
    context: OfflineContext = Depends(get_offline_context),
) -> RealtimeEventResponse:
    """Apply a change event pushed by the backend to a subscribed channel."""

    if context.subscriptions.get(payload.channel) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel is not subscribed")
    invalidated = await context.subscriptions.dispatch(payload.channel, payload.event, payload.table, payload.record)
    return RealtimeEventResponse(channel=payload.channel, invalidated=invalidated)


@router.websocket("/ws/offline")
async def offline_updates(websocket: WebSocket) -> None:
    """Maintain a long-lived connection that pushes network and realtime events."""

    await offline_updates_manager.connect(websocket)
    logger.info("Offline socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Offline socket receive failed")
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {}

            message_type = str(payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "hello":
                context = getattr(websocket.app.state, "offline", None)
                state = context.monitor.get_current_state().as_dict() if context is not None else None
                await websocket.send_text(json.dumps({"type": "ready", "state": state}))
    finally:
        await offline_updates_manager.disconnect(websocket)
        logger.info("Offline socket disconnected from %s", websocket.client)


__all__ = ["router"]
