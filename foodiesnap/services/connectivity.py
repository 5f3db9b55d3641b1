"""Connectivity sources feeding the network monitor.

A source pushes raw connectivity events to its listeners and can be polled
once for the current value. ``ManualConnectivitySource`` is fed by the
application (the mobile client reports its platform signal over HTTP);
``HttpConnectivityProbe`` measures reachability itself with ``httpx``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawConnectivityEvent:
    is_connected: bool | None
    is_internet_reachable: bool | None
    type: str = "unknown"
    details: dict[str, Any] | None = None


RawListener = Callable[[RawConnectivityEvent], Awaitable[None]]

DISCONNECTED_EVENT = RawConnectivityEvent(is_connected=False, is_internet_reachable=False, type="none")


class ConnectivitySource(Protocol):
    async def fetch(self) -> RawConnectivityEvent: ...

    def add_listener(self, listener: RawListener) -> Callable[[], None]: ...

    async def start(self) -> None: ...

    async def close(self) -> None: ...


class _ListenerRegistry:
    def __init__(self) -> None:
        self._listeners: list[RawListener] = []

    def add_listener(self, listener: RawListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def _emit(self, event: RawConnectivityEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("Connectivity listener failed for event %s", event)


class ManualConnectivitySource(_ListenerRegistry):
    """Source whose events are pushed in by the application."""

    def __init__(self, initial: RawConnectivityEvent = DISCONNECTED_EVENT) -> None:
        super().__init__()
        self._last = initial

    async def fetch(self) -> RawConnectivityEvent:
        return self._last

    async def emit(self, event: RawConnectivityEvent) -> None:
        self._last = event
        await self._emit(event)

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        self._listeners.clear()


class HttpConnectivityProbe(_ListenerRegistry):
    """Polls a reachability URL and emits an event whenever the result changes."""

    def __init__(
        self,
        url: str,
        *,
        interval: float = 15.0,
        timeout: float = 5.0,
        connection_type: str = "unknown",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._url = url
        self._interval = max(0.5, interval)
        self._timeout = timeout
        self._connection_type = connection_type
        self._transport = transport
        self._last: RawConnectivityEvent | None = None
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()

    async def fetch(self) -> RawConnectivityEvent:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url)
        except httpx.HTTPError:
            logger.info("Connectivity probe to %s failed", self._url)
            return DISCONNECTED_EVENT
        return RawConnectivityEvent(
            is_connected=True,
            is_internet_reachable=response.status_code < 500,
            type=self._connection_type,
        )

    async def poll_once(self) -> RawConnectivityEvent:
        event = await self.fetch()
        if event != self._last:
            self._last = event
            await self._emit(event)
        return event

    async def _poll_loop(self) -> None:
        while not self._stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self._poll_loop())
            logger.info("Connectivity probe started for %s every %.1fs", self._url, self._interval)

    async def close(self) -> None:
        self._stop.set()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:  # pragma: no cover - shutdown path
                pass
            self._task = None
        self._listeners.clear()


__all__ = [
    "ConnectivitySource",
    "DISCONNECTED_EVENT",
    "HttpConnectivityProbe",
    "ManualConnectivitySource",
    "RawConnectivityEvent",
]
