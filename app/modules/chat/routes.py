from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.chat.connection_manager import ConnectionManager, get_connection_manager
from app.modules.chat.schemas import (
    CreateChatRoomRequest, SendMessageRequest, MarkAsReadRequest, ChatRoomResponse,
    ChatRoomListResponse, MessageResponse, MessageListResponse, MarkAsReadResponse,
    OnlineUsersResponse, OnlineStatusResponse
)
from app.modules.chat.service import ChatService, room_key
from app.core.dependencies import get_current_user_id, get_auth_service
from supabase import Client
from typing import Any, Dict
import json
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_service(supabase: Client = Depends(get_supabase)) -> ChatService:
    return ChatService(supabase)


@router.post("/rooms", response_model=ChatRoomResponse, status_code=201)
async def create_chat_room(
    request: CreateChatRoomRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service)
):
    """Create (or return the existing) room with another user"""
    return service.create_chat_room(user_data["id"], request.other_user_id)


@router.get("/rooms", response_model=ChatRoomListResponse)
async def get_chat_rooms(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service)
):
    return service.get_chat_rooms(user_data["id"], page, limit)


@router.post("/rooms/{chat_room_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    chat_room_id: str,
    request: SendMessageRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    """Persist a message and relay it to sockets connected to the room"""
    message = service.send_message(chat_room_id, user_data["id"], request.message_text, request.message_type.value)
    await manager.broadcast(room_key(chat_room_id), "new_message", message.model_dump(mode="json"))
    return message


@router.get("/rooms/{chat_room_id}/messages", response_model=MessageListResponse)
async def get_messages(
    chat_room_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service)
):
    return service.get_messages(chat_room_id, user_data["id"], page, limit)


@router.post("/rooms/{chat_room_id}/read", response_model=MarkAsReadResponse)
async def mark_as_read(
    chat_room_id: str,
    request: MarkAsReadRequest = None,
    user_data: Dict = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    result = service.mark_as_read(chat_room_id, user_data["id"], request.message_id if request else None)
    if result.message_id:
        await manager.broadcast(room_key(chat_room_id), "message_read", {
            "chat_room_id": chat_room_id,
            "message_id": result.message_id,
            "read_by": user_data["id"],
            "read_at": result.read_at.isoformat(),
        })
    return result


@router.get("/online-users", response_model=OnlineUsersResponse)
async def get_online_users(
    user_data: Dict = Depends(get_current_user_id),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    user_ids = manager.online_users()
    return OnlineUsersResponse(user_ids=user_ids, count=len(user_ids))


@router.get("/users/{user_id}/online", response_model=OnlineStatusResponse)
async def get_user_online(
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    return OnlineStatusResponse(user_id=user_id, is_online=manager.is_online(user_id))


# WebSocket relay
#
# Client frames: {"event": "<name>", "data": {...}}
# Server frames: {"event": "<name>", "data": {...}}; every client frame gets an
# "ack" or "error" frame back.

async def _ack(websocket: WebSocket, request_event: str, **extra):
    await websocket.send_json({"event": "ack", "data": {"request": request_event, "success": True, **extra}})


async def _error(websocket: WebSocket, request_event: str, detail: str):
    await websocket.send_json({"event": "error", "data": {"request": request_event, "detail": detail}})


async def handle_client_event(
    websocket: WebSocket,
    user_id: str,
    event: str,
    data: Dict[str, Any],
    service: ChatService,
    manager: ConnectionManager
):
    chat_room_id = data.get("chat_room_id")
    if event not in ("send_message", "mark_as_read", "join_room", "leave_room", "typing_start", "typing_stop"):
        await _error(websocket, event, f"Unknown event: {event}")
        return
    if not chat_room_id:
        await _error(websocket, event, "chat_room_id is required")
        return
    key = room_key(chat_room_id)

    if event == "send_message":
        message = service.send_message(
            chat_room_id, user_id, data.get("message_text") or "", data.get("message_type") or "text"
        )
        manager.join(websocket, key)
        await manager.broadcast(key, "new_message", message.model_dump(mode="json"))
        await _ack(websocket, event, message_id=message.id)
    elif event == "mark_as_read":
        result = service.mark_as_read(chat_room_id, user_id, data.get("message_id"))
        if result.message_id:
            await manager.broadcast(key, "message_read", {
                "chat_room_id": chat_room_id,
                "message_id": result.message_id,
                "read_by": user_id,
                "read_at": result.read_at.isoformat(),
            }, exclude=websocket)
        await _ack(websocket, event, message_id=result.message_id)
    elif event == "join_room":
        service.get_room_for_participant(chat_room_id, user_id)
        manager.join(websocket, key)
        logger.info(f"User {user_id} joined room {chat_room_id}")
        await _ack(websocket, event, chat_room_id=chat_room_id)
    elif event == "leave_room":
        manager.leave(websocket, key)
        await _ack(websocket, event, chat_room_id=chat_room_id)
    else:
        if websocket not in manager.room_members(key):
            await _error(websocket, event, "Join the room first")
            return
        outgoing = "user_typing_start" if event == "typing_start" else "user_typing_stop"
        await manager.broadcast(key, outgoing, {"chat_room_id": chat_room_id, "user_id": user_id}, exclude=websocket)


@router.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    token: str = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
    service: ChatService = Depends(get_chat_service),
    manager: ConnectionManager = Depends(get_connection_manager)
):
    if not token:
        logger.warning("WebSocket rejected: no token provided")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        user_id = auth_service.get_current_user(token)["id"]
    except HTTPException as e:
        logger.warning(f"WebSocket rejected: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    first_connection = manager.connect(websocket, user_id)
    try:
        room_ids = service.get_user_room_ids(user_id)
    except Exception as e:
        logger.error(f"Error loading chat rooms for {user_id}: {str(e)}")
        room_ids = []
    manager.join_many(websocket, [room_key(r) for r in room_ids])
    logger.info(f"User {user_id} connected to chat, joined {len(room_ids)} room(s)")
    if first_connection:
        await manager.broadcast_all("user_online", {"user_id": user_id}, exclude=websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
                event = frame["event"]
                data = frame.get("data") or {}
                if not isinstance(data, dict):
                    raise ValueError("data must be an object")
            except (ValueError, KeyError, TypeError):
                await _error(websocket, "unknown", "Malformed frame")
                continue
            try:
                await handle_client_event(websocket, user_id, event, data, service, manager)
            except HTTPException as e:
                await _error(websocket, event, str(e.detail))
    except WebSocketDisconnect:
        pass
    finally:
        if manager.disconnect(websocket):
            logger.info(f"User {user_id} disconnected from chat")
            await manager.broadcast_all("user_offline", {"user_id": user_id})
