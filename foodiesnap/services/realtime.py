"""Realtime channel subscriptions and WebSocket fan-out.

``SubscriptionManager`` keeps one subscription per channel name. Each
subscription walks ``UNINITIALIZED -> INITIALIZING -> READY -> DISPOSED``;
subscribing to a name that is initializing or ready returns the existing
subscription, so duplicate channels cannot be opened. Change events pushed
by the backend invalidate the cached reads they affect and are broadcast to
connected WebSocket clients.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from fastapi import WebSocket

from .offline_cache import OfflineCache

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks active WebSocket connections and broadcasts JSON payloads."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, message: dict[str, Any]) -> None:
        payload = json.dumps(message, default=str)
        async with self._lock:
            targets = list(self._connections)
        for connection in targets:
            try:
                await connection.send_text(payload)
            except Exception:
                await self.disconnect(connection)


class SubscriptionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass(frozen=True, slots=True)
class ChannelBinding:
    event: str
    table: str
    invalidates: tuple[str, ...]
    filter: str | None = None

    def matches(self, event: str, table: str, record: dict[str, Any] | None) -> bool:
        if self.event.upper() != event.upper() or self.table != table:
            return False
        if not self.filter:
            return True
        # Filters follow the BaaS "column=eq.value" syntax.
        column, _, expected = self.filter.partition("=eq.")
        if not expected:
            return True
        return str((record or {}).get(column)) == expected


@dataclass(slots=True)
class Subscription:
    name: str
    bindings: tuple[ChannelBinding, ...]
    state: SubscriptionState = SubscriptionState.UNINITIALIZED
    events_received: int = 0
    last_event: dict[str, Any] | None = field(default=None)


ChannelOpener = Callable[[Subscription], Awaitable[None]]
ChannelCloser = Callable[[Subscription], Awaitable[None]]


async def _noop_channel(subscription: Subscription) -> None:
    return None


class SubscriptionManager:
    def __init__(
        self,
        cache: OfflineCache,
        *,
        broadcaster: WebSocketManager | None = None,
        opener: ChannelOpener = _noop_channel,
        closer: ChannelCloser = _noop_channel,
    ) -> None:
        self._cache = cache
        self._broadcaster = broadcaster
        self._opener = opener
        self._closer = closer
        self._subscriptions: dict[str, Subscription] = {}

    async def subscribe(self, name: str, bindings: list[ChannelBinding] | tuple[ChannelBinding, ...]) -> Subscription:
        existing = self._subscriptions.get(name)
        if existing is not None and existing.state in (SubscriptionState.INITIALIZING, SubscriptionState.READY):
            return existing

        subscription = Subscription(name=name, bindings=tuple(bindings))
        self._subscriptions[name] = subscription
        subscription.state = SubscriptionState.INITIALIZING
        logger.info("Subscribing to channel %s", name)
        try:
            await self._opener(subscription)
        except Exception:
            logger.exception("Opening channel %s failed", name)
            subscription.state = SubscriptionState.DISPOSED
            self._subscriptions.pop(name, None)
            raise

        # An unsubscribe may have raced the open; keep it disposed in that case.
        if subscription.state is SubscriptionState.INITIALIZING:
            subscription.state = SubscriptionState.READY
        return subscription

    async def unsubscribe(self, name: str) -> bool:
        subscription = self._subscriptions.pop(name, None)
        if subscription is None:
            return False
        subscription.state = SubscriptionState.DISPOSED
        logger.info("Unsubscribing from channel %s", name)
        try:
            await self._closer(subscription)
        except Exception:
            logger.exception("Closing channel %s failed", name)
        return True

    async def cleanup(self) -> None:
        for name in list(self._subscriptions):
            await self.unsubscribe(name)

    def get(self, name: str) -> Subscription | None:
        return self._subscriptions.get(name)

    def active_subscriptions(self) -> list[str]:
        return [
            name
            for name, subscription in self._subscriptions.items()
            if subscription.state is SubscriptionState.READY
        ]

    async def dispatch(self, name: str, event: str, table: str, record: dict[str, Any] | None = None) -> list[str]:
        """Apply one change event; return the cache prefixes invalidated."""

        subscription = self._subscriptions.get(name)
        if subscription is None or subscription.state is not SubscriptionState.READY:
            logger.debug("Ignoring %s event for inactive channel %s", event, name)
            return []

        subscription.events_received += 1
        subscription.last_event = {"event": event, "table": table, "record": record}

        invalidated: list[str] = []
        for binding in subscription.bindings:
            if not binding.matches(event, table, record):
                continue
            for prefix in binding.invalidates:
                if prefix in invalidated:
                    continue
                await self._cache.invalidate_prefix(prefix)
                invalidated.append(prefix)

        if self._broadcaster is not None:
            await self._broadcaster.broadcast(
                {
                    "type": "realtime_event",
                    "channel": name,
                    "event": event,
                    "table": table,
                    "record": record,
                    "invalidated": invalidated,
                }
            )
        return invalidated


def message_channel(conversation_id: str) -> tuple[str, list[ChannelBinding]]:
    conversation_filter = f"conversation_id=eq.{conversation_id}"
    return (
        f"messages:{conversation_id}",
        [
            ChannelBinding(
                event="INSERT",
                table="messages",
                filter=conversation_filter,
                invalidates=(f"messages:{conversation_id}", "conversations"),
            ),
            ChannelBinding(
                event="UPDATE",
                table="messages",
                filter=conversation_filter,
                invalidates=(f"messages:{conversation_id}",),
            ),
        ],
    )


def friend_request_channel(user_id: str) -> tuple[str, list[ChannelBinding]]:
    return (
        "friend-requests",
        [
            ChannelBinding(event="INSERT", table="friends", filter=f"friend_id=eq.{user_id}", invalidates=("friends",)),
            ChannelBinding(event="UPDATE", table="friends", filter=f"user_id=eq.{user_id}", invalidates=("friends",)),
        ],
    )


def conversation_channel(user_id: str) -> tuple[str, list[ChannelBinding]]:
    return (
        "conversations",
        [
            ChannelBinding(
                event="INSERT",
                table="conversation_participants",
                filter=f"user_id=eq.{user_id}",
                invalidates=("conversations",),
            ),
            ChannelBinding(event="UPDATE", table="conversations", invalidates=("conversations",)),
        ],
    )


async def initialize_user_channels(manager: SubscriptionManager, user_id: str) -> list[str]:
    """Open the per-user channels (friend requests and conversations)."""

    names: list[str] = []
    for name, bindings in (friend_request_channel(user_id), conversation_channel(user_id)):
        await manager.subscribe(name, bindings)
        names.append(name)
    return names


offline_updates_manager = WebSocketManager()


__all__ = [
    "ChannelBinding",
    "Subscription",
    "SubscriptionManager",
    "SubscriptionState",
    "WebSocketManager",
    "conversation_channel",
    "friend_request_channel",
    "initialize_user_channels",
    "message_channel",
    "offline_updates_manager",
]
