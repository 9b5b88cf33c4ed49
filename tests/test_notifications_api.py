"""Integration tests for the notification REST and websocket endpoints."""

from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from jose import jwt
from starlette.websockets import WebSocketDisconnect

from task_notifications.config import Settings


@pytest.fixture()
def client(engine, session_factory, gateway):
    """Return a test client bound to a clean application instance."""

    from main import create_app

    settings = Settings(kafka_consumer_enabled=False, secret_key="test-secret")
    app = create_app(settings, engine=engine, session_factory=session_factory, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client


def _create(client: TestClient, user_id: str = "B", title: str = "New task assigned") -> dict:
    response = client.post(
        "/notifications",
        json={
            "user_id": user_id,
            "type": "task_created",
            "title": title,
            "message": "alice created the task",
            "task_id": "t-1",
            "triggered_by": "A",
        },
    )
    assert response.status_code == 201
    return response.json()


def test_notification_lifecycle(client: TestClient) -> None:
    first = _create(client)
    second = _create(client, title="Second")
    _create(client, user_id="C")

    assert first["status"] == "pending"

    listing = client.get("/notifications", params={"user_id": "B", "limit": 1})
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 2
    assert body["total_pages"] == 2
    assert len(body["notifications"]) == 1

    unread = client.get("/notifications/unread", params={"user_id": "B"}).json()
    assert {item["id"] for item in unread} == {first["id"], second["id"]}

    marked = client.patch(f"/notifications/{first['id']}/read", params={"user_id": "B"})
    assert marked.json()["success"] is True
    again = client.patch(f"/notifications/{first['id']}/read", params={"user_id": "B"})
    assert again.json()["success"] is False

    stats = client.get("/notifications/stats", params={"user_id": "B"}).json()
    assert stats == {"total": 2, "unread": 1, "read": 1}

    read_all = client.patch("/notifications/read-all", params={"user_id": "B"}).json()
    assert read_all["count"] == 1

    deleted = client.delete(f"/notifications/{second['id']}", params={"user_id": "B"})
    assert deleted.json() == {"success": True, "message": "Notification deleted", "count": None}
    missing = client.delete(f"/notifications/{second['id']}", params={"user_id": "B"})
    assert missing.json()["success"] is False


def test_marking_someone_elses_notification_is_not_found(client: TestClient) -> None:
    created = _create(client, user_id="B")

    response = client.patch(f"/notifications/{created['id']}/read", params={"user_id": "C"})

    assert response.status_code == 404


def test_user_id_is_required(client: TestClient) -> None:
    assert client.get("/notifications").status_code == 422
    assert client.get("/notifications/stats", params={"user_id": " "}).status_code == 400


def test_bulk_creation(client: TestClient) -> None:
    payload = [
        {"user_id": user_id, "type": "task_updated", "title": "Task updated", "message": "m"}
        for user_id in ("B", "C", "D")
    ]

    response = client.post("/admin/notifications/bulk", json=payload)

    assert response.status_code == 201
    assert response.json()["count"] == 3
    assert client.get("/notifications/stats", params={"user_id": "D"}).json()["total"] == 1


def test_health_endpoints(client: TestClient) -> None:
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["websocket"]["status"] == "up"
    assert health["consumer"]["state"] == "disconnected"

    assert client.get("/health/websocket").json()["websocket"]["connected_users"] == 0

    stats = client.get("/health/notifications/stats").json()
    assert stats["service"] == "notifications-service"
    assert stats["websocket"]["users"] == []


def test_websocket_without_identity_is_closed(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_with_invalid_token_is_closed(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws?token=garbage"):
            pass

    assert excinfo.value.code == 1008


def test_websocket_receives_live_notifications(client: TestClient) -> None:
    with client.websocket_connect("/notifications/ws?user_id=B&username=bob") as websocket:
        connected = websocket.receive_json()
        assert connected["type"] == "connected"
        assert connected["data"]["user_id"] == "B"

        created = _create(client, user_id="B")
        pushed = websocket.receive_json()
        assert pushed["type"] == "notification"
        assert pushed["data"]["id"] == created["id"]

        websocket.send_json(
            {"type": "mark-notification-read", "data": {"notification_id": created["id"]}}
        )
        reply = websocket.receive_json()
        assert reply == {
            "type": "notification-marked-read",
            "data": {"notification_id": created["id"], "success": True},
        }

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong", "data": {}}

    unread = client.get("/notifications/unread", params={"user_id": "B"}).json()
    assert unread == []


def test_websocket_token_identity_and_task_rooms(client: TestClient) -> None:
    token = jwt.encode({"sub": "B", "username": "bob"}, "test-secret", algorithm="HS256")

    with client.websocket_connect(f"/notifications/ws?token={token}") as websocket:
        assert websocket.receive_json()["data"]["username"] == "bob"

        websocket.send_json({"type": "join-task-room", "data": {"taskId": "t-1"}})
        assert websocket.receive_json() == {"type": "joined-task-room", "data": {"task_id": "t-1"}}

        websocket.send_json({"type": "leave-task-room", "data": {"task_id": "t-1"}})
        assert websocket.receive_json() == {"type": "left-task-room", "data": {"task_id": "t-1"}}

        websocket.send_json({"type": "dance"})
        assert websocket.receive_json()["type"] == "error"


def test_websocket_answers_binary_frames_with_an_error(client: TestClient) -> None:
    with client.websocket_connect("/notifications/ws?user_id=B") as websocket:
        websocket.receive_json()

        websocket.send_bytes(b"\x00\x01")
        reply = websocket.receive_json()
        assert reply["type"] == "error"

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong", "data": {}}
