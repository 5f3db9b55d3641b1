"""End-to-end tests for the HTTP and WebSocket surface."""
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_offline_sync.db")
os.environ.setdefault("OFFLINE_STORAGE_BACKEND", "memory")

from fastapi.testclient import TestClient  # noqa: E402

from foodiesnap.main import app  # noqa: E402

WIFI_ONLINE = {"is_connected": True, "is_internet_reachable": True, "type": "wifi", "details": {"strength": 90}}
OFFLINE = {"is_connected": False, "is_internet_reachable": False, "type": "none"}


def _install_recorder(delivered: list[dict]) -> None:
    async def record(action):
        delivered.append(action.payload)

    processor = app.state.offline.processor
    for action_type in ("SEND_MESSAGE", "UPLOAD_PHOTO", "SEND_FRIEND_REQUEST"):
        processor.register_handler(action_type, record)


def test_routes_report_unavailable_before_startup():
    client = TestClient(app)
    response = client.get("/offline/queue")
    assert response.status_code == 503


def test_health_reports_offline_until_connectivity_is_reported():
    with TestClient(app) as client:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["online"] is False
        assert body["queued_actions"] == 0


def test_actions_queued_offline_drain_when_connectivity_returns():
    with TestClient(app) as client:
        delivered: list[dict] = []
        _install_recorder(delivered)

        first = client.post("/offline/queue", json={"type": "SEND_FRIEND_REQUEST", "payload": {"n": 1}})
        second = client.post(
            "/offline/queue", json={"type": "SEND_MESSAGE", "payload": {"n": 2}, "priority": "high"}
        )
        assert first.status_code == 201
        assert first.json()["online"] is False

        snapshot = client.get("/offline/queue").json()
        assert snapshot["status"]["total"] == 2
        assert snapshot["status"]["by_priority"]["high"] == 1
        assert [action["id"] for action in snapshot["actions"]] == [first.json()["id"], second.json()["id"]]

        state = client.post("/network/events", json=WIFI_ONLINE).json()
        assert state["is_online"] is True
        assert state["quality"] == "excellent"

        # The reconnect pass runs in the background; a manual drain waits behind it.
        client.post("/offline/queue/drain")
        assert delivered == [{"n": 2}, {"n": 1}]
        assert client.get("/offline/queue").json()["status"]["total"] == 0


def test_manual_drain_is_skipped_while_offline():
    with TestClient(app) as client:
        client.post("/network/events", json=OFFLINE)
        client.post("/offline/queue", json={"type": "SEND_MESSAGE", "payload": {}})
        summary = client.post("/offline/queue/drain").json()
        assert summary["skipped_reason"] == "offline"
        assert summary["attempted"] == 0

        assert client.delete("/offline/queue").status_code == 204
        assert client.get("/offline/queue").json()["status"]["total"] == 0


def test_invalid_enqueue_requests_are_rejected():
    with TestClient(app) as client:
        assert client.post("/offline/queue", json={"type": "SEND_MESSAGE", "priority": "urgent"}).status_code == 422
        assert client.post("/offline/queue", json={"type": "SEND_MESSAGE", "max_retries": 0}).status_code == 422
        assert client.post("/offline/queue", json={"type": ""}).status_code == 422


def test_message_endpoint_queues_while_offline():
    with TestClient(app) as client:
        client.post("/network/events", json=OFFLINE)
        response = client.post(
            "/offline/messages",
            json={"conversation_id": "c1", "sender_id": "api-user", "content": "<b>see you</b>"},
        )
        body = response.json()
        assert body["success"] is True
        assert body["queued"] is True

        actions = client.get("/offline/queue").json()["actions"]
        assert actions[-1]["id"] == body["action_id"]
        assert actions[-1]["priority"] == "high"
        assert actions[-1]["payload"]["content"] == "see you"
        client.delete("/offline/queue")


def test_cache_entries_can_be_written_read_and_removed():
    with TestClient(app) as client:
        write = client.put("/cache/feed_u1", json={"data": [{"id": "p1"}], "ttl": 60_000})
        assert write.status_code == 200
        assert client.get("/cache/feed_u1").json() == {"key": "feed_u1", "data": [{"id": "p1"}]}
        assert client.delete("/cache/feed_u1").status_code == 204
        assert client.get("/cache/feed_u1").status_code == 404
        assert client.delete("/cache/feed_u1").status_code == 404


def test_realtime_events_invalidate_cached_reads():
    with TestClient(app) as client:
        opened = client.post("/realtime/subscriptions", json={"kind": "messages", "target_id": "c9"})
        duplicate = client.post("/realtime/subscriptions", json={"kind": "messages", "target_id": "c9"})
        assert opened.json()["state"] == "ready"
        assert duplicate.json()["name"] == opened.json()["name"] == "messages:c9"
        assert client.get("/realtime/subscriptions").json() == ["messages:c9"]

        client.put("/cache/messages:c9:latest", json={"data": ["old"]})
        event = client.post(
            "/realtime/events",
            json={"channel": "messages:c9", "event": "INSERT", "table": "messages", "record": {"conversation_id": "c9"}},
        )
        assert event.json()["invalidated"] == ["messages:c9", "conversations"]
        assert client.get("/cache/messages:c9:latest").status_code == 404

        assert client.delete("/realtime/subscriptions/messages:c9").status_code == 204
        unknown = client.post(
            "/realtime/events",
            json={"channel": "messages:c9", "event": "INSERT", "table": "messages"},
        )
        assert unknown.status_code == 404


def test_offline_socket_answers_ping_and_hello():
    with TestClient(app) as client:
        with client.websocket_connect("/ws/offline") as websocket:
            websocket.send_text('{"type": "ping"}')
            assert websocket.receive_json() == {"type": "pong"}
            websocket.send_text("hello")
            ready = websocket.receive_json()
            assert ready["type"] == "ready"
            assert ready["state"]["is_connected"] is False
