import pytest
from starlette.websockets import WebSocketDisconnect

from app.modules.tickets.service import _today


def _as(auth_user, user, super_user=False):
    auth_user["id"] = user["id"]
    auth_user["app_metadata"] = {"type": "super_user"} if super_user else {}


def test_health_and_security_headers(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert client.get("/ready").json() == {"status": "ready"}
    assert client.get("/").status_code == 200


def test_ticket_routes(client, db, make_user, auth_user):
    user = make_user()
    _as(auth_user, user)

    assert client.get("/api/v1/tickets/balance").json()["total_tickets"] == 1
    assert client.post("/api/v1/tickets/use", json={}).status_code == 200

    refused = client.post("/api/v1/tickets/use", json={})
    assert refused.status_code == 402
    assert "Insufficient tickets" in refused.json()["detail"]

    assert client.post("/api/v1/tickets/claim-free").status_code == 409
    assert client.post("/api/v1/tickets/purchase", json={"amount": 0}).status_code == 422
    bought = client.post("/api/v1/tickets/purchase", json={"amount": 3}).json()
    assert bought["paid_tickets"] == 3

    check = client.get("/api/v1/tickets/check", params={"required": 3}).json()
    assert check["has_enough"] is True
    assert client.get("/api/v1/tickets/history").json()["total_count"] == 3


def test_statistics_require_super_user(client, db, make_user, auth_user):
    user = make_user()
    _as(auth_user, user)
    assert client.get("/api/v1/tickets/statistics").status_code == 403

    _as(auth_user, user, super_user=True)
    stats = client.get("/api/v1/tickets/statistics")
    assert stats.status_code == 200
    assert stats.json()["total_users"] == 0


def test_discovery_route(client, db, make_user, auth_user, add_travel_photo):
    searcher = make_user(gender="female")
    match = make_user(gender="male")
    add_travel_photo(searcher["id"], 37.5, 127.0)
    add_travel_photo(match["id"], 37.501, 127.0)
    _as(auth_user, searcher)

    assert client.post("/api/v1/discovery/nearby-users", json={"radius_km": 0}).status_code == 422
    found = client.post("/api/v1/discovery/nearby-users", json={"radius_km": 5})
    assert found.status_code == 200
    assert [u["id"] for u in found.json()["users"]] == [match["id"]]

    again = client.post("/api/v1/discovery/nearby-users", json={"radius_km": 5})
    assert again.status_code == 402


def test_like_routes(client, db, make_user, auth_user):
    a, b = make_user(), make_user(gender="female")
    _as(auth_user, a)

    sent = client.post("/api/v1/likes", json={"receiver_id": b["id"]})
    assert sent.status_code == 201
    assert client.post("/api/v1/likes", json={"receiver_id": b["id"]}).status_code == 409
    assert client.post("/api/v1/likes", json={"receiver_id": a["id"]}).status_code == 409
    assert client.post(f"/api/v1/likes/{sent.json()['id']}/accept").status_code == 403

    _as(auth_user, b)
    received = client.get("/api/v1/likes", params={"type": "received"}).json()
    assert received["total"] == 1
    accepted = client.post(f"/api/v1/likes/{sent.json()['id']}/accept")
    assert accepted.status_code == 200
    assert accepted.json()["chat_room"] is not None
    assert client.post(f"/api/v1/likes/{sent.json()['id']}/reject").status_code == 409

    matches = client.get("/api/v1/likes/matches").json()
    assert matches["matches"][0]["other_user"]["id"] == a["id"]


def test_chat_rest_routes_relay_to_sockets(client, db, make_user, auth_user, manager):
    a, b = make_user(), make_user(gender="female")
    _as(auth_user, a)
    room = client.post("/api/v1/chat/rooms", json={"other_user_id": b["id"]})
    assert room.status_code == 201
    room_id = room.json()["id"]

    class Listener:
        def __init__(self):
            self.frames = []

        async def send_json(self, data):
            self.frames.append(data)

    listener = Listener()
    manager.connect(listener, b["id"])
    manager.join(listener, f"room_{room_id}")

    message = client.post(f"/api/v1/chat/rooms/{room_id}/messages", json={"message_text": "hello"})
    assert message.status_code == 201
    assert listener.frames[0]["event"] == "new_message"
    assert listener.frames[0]["data"]["message_text"] == "hello"

    _as(auth_user, b)
    assert client.get("/api/v1/chat/rooms").json()["rooms"][0]["unread_count"] == 1
    read = client.post(f"/api/v1/chat/rooms/{room_id}/read", json={})
    assert read.json()["message_id"] == message.json()["id"]
    assert listener.frames[-1]["event"] == "message_read"
    assert client.get(f"/api/v1/chat/rooms/{room_id}/messages").json()["total"] == 1

    assert client.get(f"/api/v1/chat/users/{b['id']}/online").json()["is_online"] is True
    assert client.get("/api/v1/chat/online-users").json()["count"] == 1


def test_notification_routes(client, db, make_user, auth_user, messaging):
    user = make_user()
    _as(auth_user, user)

    token = client.post("/api/v1/notifications/tokens", json={"token": "fcm-1", "device_type": "android"})
    assert token.status_code == 201
    assert [t["token"] for t in client.get("/api/v1/notifications/tokens").json()] == ["fcm-1"]
    assert client.put("/api/v1/notifications/settings", json={"marketing": True}).json()["marketing"] is True
    assert client.get("/api/v1/notifications/settings").json()["marketing"] is True

    payload = {"user_id": user["id"], "title": "Hi", "body": "There"}
    assert client.post("/api/v1/notifications/send", json=payload).status_code == 403
    _as(auth_user, user, super_user=True)
    sent = client.post("/api/v1/notifications/send", json=payload)
    assert sent.json()["success"] is True
    assert client.get("/api/v1/notifications/history").json()["total"] == 1

    deactivated = client.post("/api/v1/notifications/tokens/deactivate", json={"token": "fcm-1"})
    assert deactivated.json()["message"] == "Deactivated 1 token(s)"
    assert client.delete(f"/api/v1/notifications/tokens/{token.json()['id']}").status_code == 204


# WebSocket relay

def test_websocket_requires_valid_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/chat/ws"):
            pass
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/chat/ws?token=bogus"):
            pass


def test_websocket_message_flow(client, db, make_user, auth_user):
    a, b, c = make_user(), make_user(gender="female"), make_user(gender="female")
    db.auth.add_user(a["id"], a["email"], token="tok-a")
    _as(auth_user, a)
    room_id = client.post("/api/v1/chat/rooms", json={"other_user_id": b["id"]}).json()["id"]
    _as(auth_user, b)
    foreign_room = client.post("/api/v1/chat/rooms", json={"other_user_id": c["id"]}).json()["id"]

    with client.websocket_connect("/api/v1/chat/ws?token=tok-a") as ws:
        ws.send_json({"event": "send_message", "data": {"chat_room_id": room_id, "message_text": "hi there"}})
        relayed = ws.receive_json()
        assert relayed["event"] == "new_message"
        assert relayed["data"]["message_text"] == "hi there"
        ack = ws.receive_json()
        assert ack["event"] == "ack"
        assert ack["data"]["message_id"] == relayed["data"]["id"]

        ws.send_json({"event": "join_room", "data": {"chat_room_id": foreign_room}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["detail"] == "You are not a participant of this chat room"

        ws.send_json({"event": "typing_start", "data": {"chat_room_id": foreign_room}})
        assert ws.receive_json()["data"]["detail"] == "Join the room first"

        ws.send_json({"event": "dance", "data": {}})
        assert ws.receive_json()["data"]["detail"] == "Unknown event: dance"

        ws.send_text("not json")
        assert ws.receive_json()["data"]["detail"] == "Malformed frame"

        ws.send_json({"event": "send_message", "data": {"chat_room_id": room_id, "message_text": "   "}})
        assert ws.receive_json()["data"]["detail"] == "Message text cannot be empty"

    assert len(db.rows("chat_messages")) == 1


def test_websocket_non_string_text_keeps_socket_open(client, db, make_user, auth_user):
    a, b = make_user(), make_user(gender="female")
    db.auth.add_user(a["id"], a["email"], token="tok-a")
    _as(auth_user, a)
    room_id = client.post("/api/v1/chat/rooms", json={"other_user_id": b["id"]}).json()["id"]

    with client.websocket_connect("/api/v1/chat/ws?token=tok-a") as ws:
        ws.send_json({"event": "send_message", "data": {"chat_room_id": room_id, "message_text": 123}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["detail"] == "Message text cannot be empty"

        ws.send_json({"event": "send_message", "data": {"chat_room_id": room_id, "message_text": "still here"}})
        assert ws.receive_json()["event"] == "new_message"
        assert ws.receive_json()["event"] == "ack"

    assert [m["message_text"] for m in db.rows("chat_messages")] == ["still here"]
