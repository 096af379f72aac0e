from supabase import Client
from app.core.best_effort import run_best_effort
from app.core.exceptions import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from app.core.pairs import canonical_pair, UserPair
from app.database.supabase_client import row_or_none, is_unique_violation
from app.modules.chat.schemas import (
    MessageType, ChatRoomResponse, ChatRoomListResponse, LastMessage,
    MessageResponse, MessageListResponse, MessageSender, MarkAsReadResponse
)
from app.modules.notifications.schemas import NotificationType
from app.modules.notifications.service import NotificationService
from app.modules.users.service import UserService
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

PUSH_PREVIEW_LENGTH = 50


def room_key(chat_room_id: str) -> str:
    return f"room_{chat_room_id}"


class ChatService:
    def __init__(self, supabase: Client, notifications: Optional[NotificationService] = None):
        self.supabase = supabase
        self.users = UserService(supabase)
        self._notifications = notifications

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self.supabase)
        return self._notifications

    def _find_room(self, pair: UserPair) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("chat_rooms")\
            .select("*")\
            .eq("user1_id", pair.user1_id)\
            .eq("user2_id", pair.user2_id)\
            .maybe_single()\
            .execute()
        return row_or_none(result)

    def get_room(self, chat_room_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("chat_rooms")\
                .select("*")\
                .eq("id", chat_room_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching chat room {chat_room_id}: {str(e)}")
            raise UpstreamError(f"Failed to fetch chat room: {str(e)}")
        room = row_or_none(result)
        if not room:
            raise NotFoundError("Chat room not found")
        return room

    def get_room_for_participant(self, chat_room_id: str, user_id: str) -> Dict[str, Any]:
        room = self.get_room(chat_room_id)
        if not UserPair(room["user1_id"], room["user2_id"]).includes(user_id):
            raise ForbiddenError("You are not a participant of this chat room")
        return room

    def create_chat_room(self, user_id: str, other_user_id: str) -> ChatRoomResponse:
        """Room for the pair, created on first use. Calling it again returns the same room."""
        pair = canonical_pair(user_id, other_user_id)
        try:
            room = self._find_room(pair)
            if room:
                return ChatRoomResponse(**room)

            self.users.get_user_row(other_user_id, "id")
            try:
                result = self.supabase.table("chat_rooms")\
                    .insert({**pair.as_row(), "is_active": True})\
                    .execute()
            except Exception as e:
                # concurrent creation for the same pair
                if is_unique_violation(e):
                    room = self._find_room(pair)
                    if room:
                        return ChatRoomResponse(**room)
                raise
            if not result.data:
                raise UpstreamError("Failed to create chat room")
            room = result.data[0]

            run_best_effort(
                f"chat_participants:{room['id']}",
                lambda: self.supabase.table("chat_participants").upsert(
                    [
                        {"chat_room_id": room["id"], "user_id": pair.user1_id},
                        {"chat_room_id": room["id"], "user_id": pair.user2_id},
                    ],
                    on_conflict="chat_room_id,user_id",
                    ignore_duplicates=True,
                ).execute(),
            )
            logger.info(f"Created chat room {room['id']} for {pair.user1_id} / {pair.user2_id}")
            return ChatRoomResponse(**room)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating chat room: {str(e)}")
            raise UpstreamError(f"Failed to create chat room: {str(e)}")

    def get_user_room_ids(self, user_id: str) -> List[str]:
        result = self.supabase.table("chat_rooms")\
            .select("id")\
            .or_(f"user1_id.eq.{user_id},user2_id.eq.{user_id}")\
            .eq("is_active", True)\
            .execute()
        return [row["id"] for row in (result.data or [])]

    def get_chat_rooms(self, user_id: str, page: int = 1, limit: int = 20) -> ChatRoomListResponse:
        """Active rooms, most recently updated first, with the other user, last message and unread count."""
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("chat_rooms")\
                .select("*", count="exact")\
                .or_(f"user1_id.eq.{user_id},user2_id.eq.{user_id}")\
                .eq("is_active", True)\
                .order("updated_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            rooms = result.data or []

            others = [UserPair(r["user1_id"], r["user2_id"]).other(user_id) for r in rooms]
            summaries = self.users.get_summaries(others)

            items = []
            for room, other_id in zip(rooms, others):
                items.append(ChatRoomResponse(
                    **room,
                    other_user=summaries.get(other_id),
                    last_message=self._last_message(room["id"]),
                    unread_count=self._unread_count(room["id"], user_id),
                ))
            return ChatRoomListResponse(rooms=items, total=result.count or 0, page=page, limit=limit)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting chat rooms for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get chat rooms: {str(e)}")

    def _last_message(self, chat_room_id: str) -> Optional[LastMessage]:
        result = self.supabase.table("chat_messages")\
            .select("id, message_text, sender_id, message_type, created_at")\
            .eq("chat_room_id", chat_room_id)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        return LastMessage(**result.data[0]) if result.data else None

    def _unread_count(self, chat_room_id: str, user_id: str) -> int:
        participant = row_or_none(
            self.supabase.table("chat_participants")
                .select("last_read_message_id")
                .eq("chat_room_id", chat_room_id)
                .eq("user_id", user_id)
                .maybe_single()
                .execute()
        )
        query = self.supabase.table("chat_messages")\
            .select("id", count="exact")\
            .eq("chat_room_id", chat_room_id)\
            .neq("sender_id", user_id)
        last_read_id = participant.get("last_read_message_id") if participant else None
        if last_read_id:
            cursor = row_or_none(
                self.supabase.table("chat_messages")
                    .select("created_at")
                    .eq("id", last_read_id)
                    .maybe_single()
                    .execute()
            )
            if cursor:
                query = query.gt("created_at", cursor["created_at"])
        return query.execute().count or 0

    def send_message(
        self,
        chat_room_id: str,
        sender_id: str,
        message_text: str,
        message_type: str = MessageType.TEXT.value
    ) -> MessageResponse:
        if not isinstance(message_text, str) or not message_text.strip():
            raise ValidationError("Message text cannot be empty")
        try:
            message_type = MessageType(message_type)
        except ValueError:
            raise ValidationError(f"Unsupported message type: {message_type}")

        room = self.get_room_for_participant(chat_room_id, sender_id)
        try:
            result = self.supabase.table("chat_messages").insert({
                "chat_room_id": chat_room_id,
                "sender_id": sender_id,
                "message_text": message_text,
                "message_type": message_type.value,
            }).execute()
            if not result.data:
                raise UpstreamError("Failed to send message")
            message = result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error sending message to room {chat_room_id}: {str(e)}")
            raise UpstreamError(f"Failed to send message: {str(e)}")

        run_best_effort(
            f"chat_room_touch:{chat_room_id}",
            lambda: self.supabase.table("chat_rooms")
                .update({"updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", chat_room_id)
                .execute(),
        )

        sender = self._sender(sender_id)
        recipient_id = UserPair(room["user1_id"], room["user2_id"]).other(sender_id)
        preview = message_text if len(message_text) <= PUSH_PREVIEW_LENGTH else message_text[:PUSH_PREVIEW_LENGTH] + "..."
        run_best_effort(
            f"push:chat_message:{recipient_id}",
            self.notifications.notify,
            recipient_id,
            NotificationType.CHAT_MESSAGE,
            sender_name=sender.name if sender else "New message",
            message=preview,
            chat_room_id=chat_room_id,
            sender_id=sender_id,
        )
        return MessageResponse(**message, sender=sender)

    def _sender(self, sender_id: str) -> Optional[MessageSender]:
        result = run_best_effort(f"chat_sender:{sender_id}", self.users.get_summaries, [sender_id])
        summary = (result.value or {}).get(sender_id) if result.ok else None
        if summary is None:
            return None
        return MessageSender(id=summary.id, name=summary.name, profile_photo=summary.profile_photo)

    def get_messages(self, chat_room_id: str, user_id: str, page: int = 1, limit: int = 50) -> MessageListResponse:
        """Messages newest first"""
        self.get_room_for_participant(chat_room_id, user_id)
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("chat_messages")\
                .select("*", count="exact")\
                .eq("chat_room_id", chat_room_id)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            messages = result.data or []
            summaries = self.users.get_summaries([m["sender_id"] for m in messages])
            items = []
            for message in messages:
                summary = summaries.get(message["sender_id"])
                sender = MessageSender(
                    id=summary.id, name=summary.name, profile_photo=summary.profile_photo
                ) if summary else None
                items.append(MessageResponse(**message, sender=sender))
            return MessageListResponse(messages=items, total=result.count or 0, page=page, limit=limit)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting messages for room {chat_room_id}: {str(e)}")
            raise UpstreamError(f"Failed to get messages: {str(e)}")

    def mark_as_read(self, chat_room_id: str, user_id: str, message_id: Optional[str] = None) -> MarkAsReadResponse:
        """Move the user's read cursor to message_id, or to the latest message when none is given."""
        self.get_room_for_participant(chat_room_id, user_id)
        try:
            if message_id:
                found = self.supabase.table("chat_messages")\
                    .select("id")\
                    .eq("id", message_id)\
                    .eq("chat_room_id", chat_room_id)\
                    .execute()
                if not found.data:
                    raise NotFoundError("Message not found in this chat room")
            else:
                latest = self._last_message(chat_room_id)
                if latest is None:
                    return MarkAsReadResponse(chat_room_id=chat_room_id)
                message_id = latest.id

            read_at = datetime.now(timezone.utc)
            self.supabase.table("chat_participants")\
                .upsert({
                    "chat_room_id": chat_room_id,
                    "user_id": user_id,
                    "last_read_message_id": message_id,
                    "last_read_at": read_at.isoformat(),
                }, on_conflict="chat_room_id,user_id")\
                .execute()
            return MarkAsReadResponse(chat_room_id=chat_room_id, message_id=message_id, read_at=read_at)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error marking room {chat_room_id} as read: {str(e)}")
            raise UpstreamError(f"Failed to mark messages as read: {str(e)}")
