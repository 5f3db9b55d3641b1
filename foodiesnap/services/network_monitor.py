"""Process-wide view of device connectivity.

The monitor normalizes raw connectivity events into a small
:class:`NetworkState`, fans changes out to subscribers and runs the
registered reconnect hooks once per offline to online transition.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable

from .connectivity import ConnectivitySource, RawConnectivityEvent

logger = logging.getLogger(__name__)


class ConnectionType(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    NONE = "none"
    UNKNOWN = "unknown"


class ConnectionQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class NetworkState:
    is_connected: bool
    type: ConnectionType
    quality: ConnectionQuality
    is_internet_reachable: bool
    is_expensive: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "type": self.type.value,
            "quality": self.quality.value,
            "is_internet_reachable": self.is_internet_reachable,
            "is_expensive": self.is_expensive,
        }


OFFLINE_STATE = NetworkState(
    is_connected=False,
    type=ConnectionType.NONE,
    quality=ConnectionQuality.OFFLINE,
    is_internet_reachable=False,
    is_expensive=False,
)


class MonitorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DISPOSED = "disposed"


class MonitorLifecycleError(RuntimeError):
    """Raised when a disposed monitor is asked to start again."""


NetworkListener = Callable[[NetworkState], Any]
ReconnectHook = Callable[[], Awaitable[Any]]


def map_connection_type(raw: str | None) -> ConnectionType:
    try:
        return ConnectionType((raw or "").lower())
    except ValueError:
        return ConnectionType.UNKNOWN


def _detail(details: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in details and details[name] is not None:
            return details[name]
    return None


def assess_connection_quality(event: RawConnectivityEvent) -> ConnectionQuality:
    if not event.is_connected:
        return ConnectionQuality.OFFLINE

    kind = (event.type or "").lower()
    details = event.details or {}

    if kind == "wifi" and details:
        strength = _detail(details, "strength")
        if strength is not None:
            strength = float(strength)
            if strength > 75:
                return ConnectionQuality.EXCELLENT
            if strength > 50:
                return ConnectionQuality.GOOD
            if strength > 25:
                return ConnectionQuality.FAIR
            return ConnectionQuality.POOR

    if kind == "cellular" and details:
        generation = str(_detail(details, "cellular_generation", "cellularGeneration") or "").lower()
        if generation == "5g":
            return ConnectionQuality.EXCELLENT
        if generation == "4g":
            return ConnectionQuality.GOOD
        if generation == "3g":
            return ConnectionQuality.FAIR
        return ConnectionQuality.POOR

    return ConnectionQuality.GOOD


def parse_connectivity_event(event: RawConnectivityEvent) -> NetworkState:
    details = event.details or {}
    expensive = _detail(details, "is_connection_expensive", "isConnectionExpensive")
    return NetworkState(
        is_connected=bool(event.is_connected),
        type=map_connection_type(event.type),
        quality=assess_connection_quality(event),
        is_internet_reachable=bool(event.is_internet_reachable),
        is_expensive=bool(expensive),
    )


class NetworkMonitor:
    """Tracks the last known :class:`NetworkState` for one connectivity source."""

    def __init__(self, source: ConnectivitySource) -> None:
        self._source = source
        self._state = OFFLINE_STATE
        self._lifecycle = MonitorState.UNINITIALIZED
        self._listeners: set[NetworkListener] = set()
        self._reconnect_hooks: list[ReconnectHook] = []
        self._detach: Callable[[], None] | None = None

    @property
    def lifecycle(self) -> MonitorState:
        return self._lifecycle

    async def initialize(self) -> None:
        """Attach to the source and seed state with one immediate fetch."""

        if self._lifecycle is MonitorState.DISPOSED:
            raise MonitorLifecycleError("Network monitor has been disposed")
        if self._lifecycle is not MonitorState.UNINITIALIZED:
            return

        self._lifecycle = MonitorState.INITIALIZING
        self._detach = self._source.add_listener(self._on_source_event)
        try:
            initial = await self._source.fetch()
            await self.on_change(initial)
            await self._source.start()
        except Exception:
            logger.exception("Initial connectivity fetch failed; staying offline")
        if self._lifecycle is MonitorState.INITIALIZING:
            self._lifecycle = MonitorState.READY

    async def _on_source_event(self, event: RawConnectivityEvent) -> None:
        if self._lifecycle is MonitorState.DISPOSED:
            return
        await self.on_change(event)

    async def on_change(self, event: RawConnectivityEvent) -> NetworkState:
        """Normalize ``event``, publish it and drain on reconnect."""

        new_state = parse_connectivity_event(event)
        was_offline = not self._state.is_connected
        self._state = new_state

        for listener in list(self._listeners):
            try:
                result = listener(new_state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Network listener failed")

        if was_offline and new_state.is_connected:
            logger.info("Connectivity restored (%s, %s)", new_state.type.value, new_state.quality.value)
            for hook in list(self._reconnect_hooks):
                try:
                    await hook()
                except Exception:
                    logger.exception("Reconnect hook failed")
        return new_state

    def get_current_state(self) -> NetworkState:
        return replace(self._state)

    def is_online(self) -> bool:
        return self._state.is_connected and self._state.is_internet_reachable

    def is_expensive_connection(self) -> bool:
        return self._state.is_expensive

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def add_reconnect_hook(self, hook: ReconnectHook) -> Callable[[], None]:
        self._reconnect_hooks.append(hook)

        def _remove() -> None:
            if hook in self._reconnect_hooks:
                self._reconnect_hooks.remove(hook)

        return _remove

    async def dispose(self) -> None:
        if self._lifecycle is MonitorState.DISPOSED:
            return
        self._lifecycle = MonitorState.DISPOSED
        if self._detach is not None:
            self._detach()
            self._detach = None
        try:
            await self._source.close()
        except Exception:
            logger.exception("Closing connectivity source failed")
        self._listeners.clear()
        self._reconnect_hooks.clear()


__all__ = [
    "ConnectionQuality",
    "ConnectionType",
    "MonitorLifecycleError",
    "MonitorState",
    "NetworkMonitor",
    "NetworkState",
    "OFFLINE_STATE",
    "assess_connection_quality",
    "map_connection_type",
    "parse_connectivity_event",
]
