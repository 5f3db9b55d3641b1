"""Convenience exports for schema layer."""
from .offline import (
    ActionResultResponse,
    CacheEntryResponse,
    CacheWriteRequest,
    ConnectivityEventRequest,
    DrainSummaryResponse,
    EnqueueRequest,
    EnqueueResponse,
    MessageSendRequest,
    NetworkStateResponse,
    QueueSnapshotResponse,
    QueueStatusResponse,
    QueuedActionResponse,
    RealtimeEventRequest,
    RealtimeEventResponse,
    SubscriptionRequest,
    SubscriptionResponse,
)

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
