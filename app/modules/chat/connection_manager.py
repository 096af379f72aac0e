"""Process-local registry of live chat WebSockets: user_id -> sockets, room key -> sockets."""
import threading
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Tracks only connections held by this process. Presence reported here is a
    cache of local sockets, not a cluster-wide view.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._user_sockets: Dict[str, Set[WebSocket]] = {}
        self._socket_users: Dict[WebSocket, str] = {}
        self._rooms: Dict[str, Set[WebSocket]] = {}

    def connect(self, websocket: WebSocket, user_id: str) -> bool:
        """Register an accepted socket. True when this is the user's first live connection."""
        with self._lock:
            sockets = self._user_sockets.setdefault(user_id, set())
            first = not sockets
            sockets.add(websocket)
            self._socket_users[websocket] = user_id
        logger.debug(f"User {user_id} connected ({len(sockets)} socket(s))")
        return first

    def disconnect(self, websocket: WebSocket) -> Optional[str]:
        """Drop the socket from every room. Returns the user id when their last socket went away."""
        with self._lock:
            user_id = self._socket_users.pop(websocket, None)
            for key in [k for k, members in self._rooms.items() if websocket in members]:
                self._rooms[key].discard(websocket)
                if not self._rooms[key]:
                    del self._rooms[key]
            if user_id is None:
                return None
            sockets = self._user_sockets.get(user_id, set())
            sockets.discard(websocket)
            if sockets:
                return None
            self._user_sockets.pop(user_id, None)
        logger.debug(f"User {user_id} went offline")
        return user_id

    def join(self, websocket: WebSocket, room_key: str) -> None:
        with self._lock:
            self._rooms.setdefault(room_key, set()).add(websocket)

    def join_many(self, websocket: WebSocket, room_keys: Iterable[str]) -> None:
        with self._lock:
            for key in room_keys:
                self._rooms.setdefault(key, set()).add(websocket)

    def leave(self, websocket: WebSocket, room_key: str) -> None:
        with self._lock:
            members = self._rooms.get(room_key)
            if members is None:
                return
            members.discard(websocket)
            if not members:
                del self._rooms[room_key]

    def room_members(self, room_key: str) -> List[WebSocket]:
        with self._lock:
            return list(self._rooms.get(room_key, ()))

    def user_of(self, websocket: WebSocket) -> Optional[str]:
        with self._lock:
            return self._socket_users.get(websocket)

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._user_sockets.get(user_id))

    def online_users(self) -> List[str]:
        with self._lock:
            return [uid for uid, sockets in self._user_sockets.items() if sockets]

    async def _send(self, websocket: WebSocket, envelope: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(envelope)
            return True
        except Exception as e:
            logger.warning(f"Dropping dead socket of user {self.user_of(websocket)}: {e}")
            self.disconnect(websocket)
            return False

    async def broadcast(self, room_key: str, event: str, payload: Any, exclude: Optional[WebSocket] = None) -> int:
        """Send {"event", "data"} to every socket in the room. Returns sockets reached."""
        envelope = {"event": event, "data": payload}
        sent = 0
        for websocket in self.room_members(room_key):
            if websocket is exclude:
                continue
            if await self._send(websocket, envelope):
                sent += 1
        return sent

    async def broadcast_all(self, event: str, payload: Any, exclude: Optional[WebSocket] = None) -> int:
        with self._lock:
            sockets = list(self._socket_users.keys())
        envelope = {"event": event, "data": payload}
        sent = 0
        for websocket in sockets:
            if websocket is exclude:
                continue
            if await self._send(websocket, envelope):
                sent += 1
        return sent

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        with self._lock:
            sockets = list(self._user_sockets.get(user_id, ()))
        envelope = {"event": event, "data": payload}
        sent = 0
        for websocket in sockets:
            if await self._send(websocket, envelope):
                sent += 1
        return sent


manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    return manager
