"""Tests for connectivity normalization and the network monitor lifecycle."""
from __future__ import annotations

import asyncio
import os

import httpx
import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_offline_sync.db")
os.environ.setdefault("OFFLINE_STORAGE_BACKEND", "memory")

from foodiesnap.services.connectivity import (  # noqa: E402
    DISCONNECTED_EVENT,
    HttpConnectivityProbe,
    ManualConnectivitySource,
    RawConnectivityEvent,
)
from foodiesnap.services.network_monitor import (  # noqa: E402
    ConnectionQuality,
    ConnectionType,
    MonitorLifecycleError,
    MonitorState,
    NetworkMonitor,
    assess_connection_quality,
    parse_connectivity_event,
)

ONLINE_WIFI = RawConnectivityEvent(is_connected=True, is_internet_reachable=True, type="wifi", details={"strength": 90})
CAPTIVE_WIFI = RawConnectivityEvent(is_connected=True, is_internet_reachable=False, type="wifi")


@pytest.mark.parametrize(
    "event, expected",
    [
        (RawConnectivityEvent(True, True, "wifi", {"strength": 80}), ConnectionQuality.EXCELLENT),
        (RawConnectivityEvent(True, True, "wifi", {"strength": 75}), ConnectionQuality.GOOD),
        (RawConnectivityEvent(True, True, "wifi", {"strength": 60}), ConnectionQuality.GOOD),
        (RawConnectivityEvent(True, True, "wifi", {"strength": 30}), ConnectionQuality.FAIR),
        (RawConnectivityEvent(True, True, "wifi", {"strength": 25}), ConnectionQuality.POOR),
        (RawConnectivityEvent(True, True, "wifi", {"ssid": "home"}), ConnectionQuality.GOOD),
        (RawConnectivityEvent(True, True, "wifi", None), ConnectionQuality.GOOD),
        (RawConnectivityEvent(True, True, "cellular", {"cellular_generation": "5g"}), ConnectionQuality.EXCELLENT),
        (RawConnectivityEvent(True, True, "cellular", {"cellularGeneration": "4g"}), ConnectionQuality.GOOD),
        (RawConnectivityEvent(True, True, "cellular", {"cellular_generation": "3g"}), ConnectionQuality.FAIR),
        (RawConnectivityEvent(True, True, "cellular", {"cellular_generation": "2g"}), ConnectionQuality.POOR),
        (RawConnectivityEvent(True, True, "ethernet", None), ConnectionQuality.GOOD),
        (RawConnectivityEvent(False, False, "wifi", {"strength": 95}), ConnectionQuality.OFFLINE),
    ],
)
def test_assess_connection_quality(event, expected):
    assert assess_connection_quality(event) is expected


def test_parse_event_keeps_offline_quality_in_sync_with_connection():
    state = parse_connectivity_event(RawConnectivityEvent(None, None, "bluetooth", None))
    assert state.is_connected is False
    assert state.quality is ConnectionQuality.OFFLINE
    assert state.type is ConnectionType.UNKNOWN

    state = parse_connectivity_event(
        RawConnectivityEvent(True, True, "cellular", {"cellular_generation": "4g", "is_connection_expensive": True})
    )
    assert state.is_connected is True
    assert state.quality is not ConnectionQuality.OFFLINE
    assert state.is_expensive is True


def test_state_defaults_to_offline_before_first_measurement():
    monitor = NetworkMonitor(ManualConnectivitySource())
    state = monitor.get_current_state()
    assert state.is_connected is False
    assert state.type is ConnectionType.NONE
    assert state.quality is ConnectionQuality.OFFLINE
    assert monitor.is_online() is False
    assert monitor.lifecycle is MonitorState.UNINITIALIZED


def test_initialize_seeds_state_from_source():
    async def scenario():
        monitor = NetworkMonitor(ManualConnectivitySource(ONLINE_WIFI))
        await monitor.initialize()
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.lifecycle is MonitorState.READY
    assert monitor.is_online() is True
    assert monitor.get_current_state().quality is ConnectionQuality.EXCELLENT


def test_is_online_requires_internet_reachability():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        await monitor.initialize()
        await source.emit(CAPTIVE_WIFI)
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.get_current_state().is_connected is True
    assert monitor.is_online() is False


def test_subscribers_receive_changes_until_unsubscribed():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        await monitor.initialize()
        first: list[bool] = []
        second: list[bool] = []
        unsubscribe_first = monitor.subscribe(lambda state: first.append(state.is_connected))
        monitor.subscribe(lambda state: second.append(state.is_connected))
        await source.emit(ONLINE_WIFI)
        unsubscribe_first()
        await source.emit(DISCONNECTED_EVENT)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == [True]
    assert second == [True, False]


def test_failing_listener_does_not_stop_fan_out():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        await monitor.initialize()
        seen: list[str] = []

        def broken(state):
            raise RuntimeError("listener exploded")

        monitor.subscribe(broken)
        monitor.subscribe(lambda state: seen.append(state.type.value))
        await source.emit(ONLINE_WIFI)
        return seen

    assert asyncio.run(scenario()) == ["wifi"]


def test_reconnect_hook_runs_once_per_offline_to_online_transition():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        calls: list[int] = []

        async def hook():
            calls.append(1)

        monitor.add_reconnect_hook(hook)
        await monitor.initialize()
        await source.emit(ONLINE_WIFI)
        await source.emit(ONLINE_WIFI)
        await source.emit(RawConnectivityEvent(True, True, "cellular", {"cellular_generation": "4g"}))
        first_round = len(calls)
        await source.emit(DISCONNECTED_EVENT)
        await source.emit(ONLINE_WIFI)
        return first_round, len(calls)

    first_round, total = asyncio.run(scenario())
    assert first_round == 1
    assert total == 2


def test_initialize_twice_registers_a_single_source_listener():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        await monitor.initialize()
        await monitor.initialize()
        seen: list[bool] = []
        monitor.subscribe(lambda state: seen.append(state.is_connected))
        await source.emit(ONLINE_WIFI)
        return seen

    assert asyncio.run(scenario()) == [True]


def test_disposed_monitor_ignores_events_and_cannot_restart():
    async def scenario():
        source = ManualConnectivitySource()
        monitor = NetworkMonitor(source)
        await monitor.initialize()
        await monitor.dispose()
        await source.emit(ONLINE_WIFI)
        assert monitor.is_online() is False
        assert monitor.lifecycle is MonitorState.DISPOSED
        with pytest.raises(MonitorLifecycleError):
            await monitor.initialize()

    asyncio.run(scenario())


def test_http_probe_reports_reachability():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    probe = HttpConnectivityProbe("https://probe.example/health", transport=httpx.MockTransport(handler))
    event = asyncio.run(probe.fetch())
    assert event.is_connected is True
    assert event.is_internet_reachable is True


def test_http_probe_treats_transport_errors_as_disconnected():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    probe = HttpConnectivityProbe("https://probe.example/health", transport=httpx.MockTransport(handler))
    event = asyncio.run(probe.fetch())
    assert event == DISCONNECTED_EVENT


def test_http_probe_emits_only_when_result_changes():
    responses = iter([200, 200, 503])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(responses))

    async def scenario():
        probe = HttpConnectivityProbe("https://probe.example/health", transport=httpx.MockTransport(handler))
        emitted: list[RawConnectivityEvent] = []

        async def listener(event: RawConnectivityEvent) -> None:
            emitted.append(event)

        probe.add_listener(listener)
        for _ in range(3):
            await probe.poll_once()
        return emitted

    emitted = asyncio.run(scenario())
    assert [event.is_internet_reachable for event in emitted] == [True, False]
