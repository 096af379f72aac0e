import asyncio

from app.modules.chat.connection_manager import ConnectionManager


class RecordingSocket:
    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection reset")
        self.frames.append(data)


def test_presence_tracks_every_socket_of_a_user():
    manager = ConnectionManager()
    phone, tablet = RecordingSocket(), RecordingSocket()

    assert manager.connect(phone, "u1") is True
    assert manager.connect(tablet, "u1") is False
    assert manager.is_online("u1")
    assert manager.online_users() == ["u1"]

    assert manager.disconnect(phone) is None
    assert manager.is_online("u1")
    assert manager.disconnect(tablet) == "u1"
    assert not manager.is_online("u1")
    assert manager.online_users() == []


def test_disconnect_of_unknown_socket():
    assert ConnectionManager().disconnect(RecordingSocket()) is None


def test_broadcast_reaches_room_members_except_excluded():
    manager = ConnectionManager()
    sender, receiver, bystander = RecordingSocket(), RecordingSocket(), RecordingSocket()
    for socket, user in ((sender, "a"), (receiver, "b"), (bystander, "c")):
        manager.connect(socket, user)
    manager.join_many(sender, ["room_1"])
    manager.join(receiver, "room_1")

    sent = asyncio.run(manager.broadcast("room_1", "user_typing_start", {"user_id": "a"}, exclude=sender))

    assert sent == 1
    assert receiver.frames == [{"event": "user_typing_start", "data": {"user_id": "a"}}]
    assert sender.frames == []
    assert bystander.frames == []


def test_leave_and_disconnect_remove_room_membership():
    manager = ConnectionManager()
    socket = RecordingSocket()
    manager.connect(socket, "a")
    manager.join_many(socket, ["room_1", "room_2"])

    manager.leave(socket, "room_1")
    assert manager.room_members("room_1") == []
    assert manager.room_members("room_2") == [socket]

    manager.disconnect(socket)
    assert manager.room_members("room_2") == []


def test_dead_socket_is_dropped_on_send():
    manager = ConnectionManager()
    dead, alive = RecordingSocket(fail=True), RecordingSocket()
    manager.connect(dead, "a")
    manager.connect(alive, "b")
    manager.join(dead, "room_1")
    manager.join(alive, "room_1")

    sent = asyncio.run(manager.broadcast("room_1", "new_message", {"id": "m1"}))

    assert sent == 1
    assert not manager.is_online("a")
    assert manager.room_members("room_1") == [alive]


def test_send_to_user_and_broadcast_all():
    manager = ConnectionManager()
    phone, tablet, other = RecordingSocket(), RecordingSocket(), RecordingSocket()
    manager.connect(phone, "a")
    manager.connect(tablet, "a")
    manager.connect(other, "b")

    assert asyncio.run(manager.send_to_user("a", "ping", {})) == 2
    assert asyncio.run(manager.broadcast_all("user_online", {"user_id": "a"}, exclude=phone)) == 2

    assert [f["event"] for f in phone.frames] == ["ping"]
    assert [f["event"] for f in tablet.frames] == ["ping", "user_online"]
    assert [f["event"] for f in other.frames] == ["user_online"]
