"""Composition root wiring storage, monitor, queue, processor and cache."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from ..config import Settings, get_settings
from .connectivity import ConnectivitySource, HttpConnectivityProbe, ManualConnectivitySource
from .network_monitor import NetworkMonitor, NetworkState
from .offline_cache import OfflineCache
from .offline_queue import ActionPriority, PersistentQueue, now_ms
from .queue_processor import ActionHandler, QueueProcessor
from .realtime import SubscriptionManager, WebSocketManager
from .storage import KeyValueStorage, build_storage

logger = logging.getLogger(__name__)


class OfflineContext:
    """Owns every offline component; ``init()`` and ``dispose()`` bracket its life."""

    def __init__(
        self,
        *,
        storage: KeyValueStorage,
        source: ConnectivitySource,
        handlers: Mapping[str, ActionHandler] | None = None,
        settings: Settings | None = None,
        broadcaster: WebSocketManager | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        settings = settings or get_settings()
        self.settings = settings
        self.storage = storage
        self.source = source
        self.broadcaster = broadcaster
        self.monitor = NetworkMonitor(source)
        self.queue = PersistentQueue(
            storage,
            is_online=self.monitor.is_online,
            default_max_retries=settings.offline_queue_max_retries,
            dedupe=settings.offline_queue_dedupe,
            clock=clock,
        )
        self.processor = QueueProcessor(
            self.queue,
            is_online=self.monitor.is_online,
            handlers=handlers,
            concurrency=settings.offline_drain_concurrency,
            action_timeout=settings.offline_action_timeout_seconds,
        )
        self.cache = OfflineCache(
            storage,
            is_online=self.monitor.is_online,
            default_ttl_ms=settings.offline_cache_ttl_ms,
            clock=clock,
        )
        self.subscriptions = SubscriptionManager(self.cache, broadcaster=broadcaster)
        self._detachers: list[Callable[[], None]] = []
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def init(self) -> None:
        if self._ready:
            return
        await self.queue.load()
        self.queue.set_drain_request(self.processor.request_drain)
        self._detachers.append(self.monitor.add_reconnect_hook(self._drain_on_reconnect))
        if self.broadcaster is not None:
            broadcaster = self.broadcaster

            async def _push_state(state: NetworkState) -> None:
                await broadcaster.broadcast({"type": "network_state", "state": state.as_dict()})

            self._detachers.append(self.monitor.subscribe(_push_state))
        await self.monitor.initialize()
        self._ready = True
        logger.info("Offline support ready (%d queued actions)", len(self.queue))

    async def _drain_on_reconnect(self) -> None:
        # Scheduled, not awaited: connectivity callbacks return before the pass ends.
        self.processor.request_drain()

    async def dispose(self) -> None:
        for detach in self._detachers:
            detach()
        self._detachers.clear()
        self.queue.set_drain_request(None)
        await self.processor.dispose()
        await self.subscriptions.cleanup()
        await self.monitor.dispose()
        self._ready = False

    async def queue_offline_action(
        self,
        action_type: str,
        payload: Any,
        priority: ActionPriority | str = ActionPriority.MEDIUM,
        max_retries: int | None = None,
        *,
        dedupe: bool | None = None,
    ) -> str:
        return await self.queue.enqueue(action_type, payload, priority, max_retries, dedupe=dedupe)


def build_connectivity_source(settings: Settings) -> ConnectivitySource:
    if settings.connectivity_probe_url:
        return HttpConnectivityProbe(
            settings.connectivity_probe_url,
            interval=settings.connectivity_probe_interval,
            timeout=settings.connectivity_probe_timeout,
        )
    return ManualConnectivitySource()


def build_offline_context(
    settings: Settings | None = None,
    *,
    handlers: Mapping[str, ActionHandler] | None = None,
    broadcaster: WebSocketManager | None = None,
) -> OfflineContext:
    settings = settings or get_settings()
    return OfflineContext(
        storage=build_storage(settings.offline_storage_backend),
        source=build_connectivity_source(settings),
        handlers=handlers,
        settings=settings,
        broadcaster=broadcaster,
    )


__all__ = ["OfflineContext", "build_connectivity_source", "build_offline_context"]
