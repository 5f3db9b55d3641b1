"""Schemas used by the offline queue, network, cache and realtime endpoints."""
from __future__ import annotations

from typing import Any, List, Literal

from pydantic import BaseModel, Field


class EnqueueRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=64, description="Action kind, e.g. SEND_MESSAGE")
    payload: Any = None
    priority: Literal["low", "medium", "high"] = "medium"
    max_retries: int | None = Field(None, ge=1, le=50)
    dedupe: bool | None = Field(None, description="Collapse into an identical pending action")


class EnqueueResponse(BaseModel):
    id: str
    online: bool


class QueuedActionResponse(BaseModel):
    id: str
    type: str
    payload: Any
    timestamp: int
    retry_count: int
    max_retries: int
    priority: str


class QueueStatusResponse(BaseModel):
    total: int
    by_priority: dict[str, int]
    oldest_timestamp: int | None


class QueueSnapshotResponse(BaseModel):
    status: QueueStatusResponse
    actions: List[QueuedActionResponse]
    draining: bool


class DrainSummaryResponse(BaseModel):
    attempted: int
    succeeded: int
    failed: int
    dropped: int
    unhandled: int
    timed_out: int
    skipped_reason: str | None = None


class MessageSendRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=4000)


class ActionResultResponse(BaseModel):
    success: bool
    queued: bool = False
    action_id: str | None = None
    error: str | None = None
    data: Any = None


class NetworkStateResponse(BaseModel):
    is_connected: bool
    type: str
    quality: str
    is_internet_reachable: bool
    is_expensive: bool
    is_online: bool


class ConnectivityEventRequest(BaseModel):
    is_connected: bool | None = None
    is_internet_reachable: bool | None = None
    type: str = "unknown"
    details: dict[str, Any] | None = None


class CacheWriteRequest(BaseModel):
    data: Any
    ttl: int | None = Field(None, ge=1, description="Time to live in milliseconds")


class CacheEntryResponse(BaseModel):
    key: str
    data: Any


class SubscriptionRequest(BaseModel):
    kind: Literal["messages", "friend-requests", "conversations"]
    target_id: str = Field(..., min_length=1, description="Conversation id for messages, user id otherwise")


class SubscriptionResponse(BaseModel):
    name: str
    state: str
    events_received: int


class RealtimeEventRequest(BaseModel):
    channel: str
    event: str = Field(..., pattern="^(INSERT|UPDATE|DELETE)$")
    table: str
    record: dict[str, Any] | None = None


class RealtimeEventResponse(BaseModel):
    channel: str
    invalidated: List[str]


__all__ = [
    "ActionResultResponse",
    "CacheEntryResponse",
    "CacheWriteRequest",
    "ConnectivityEventRequest",
    "DrainSummaryResponse",
    "EnqueueRequest",
    "EnqueueResponse",
    "MessageSendRequest",
    "NetworkStateResponse",
    "QueueSnapshotResponse",
    "QueueStatusResponse",
    "QueuedActionResponse",
    "RealtimeEventRequest",
    "RealtimeEventResponse",
    "SubscriptionRequest",
    "SubscriptionResponse",
]
