from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.modules.users.schemas import UserSummary, PhotoSummary


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SYSTEM = "system"


class CreateChatRoomRequest(BaseModel):
    other_user_id: str


class SendMessageRequest(BaseModel):
    message_text: str = Field(..., min_length=1)
    message_type: MessageType = MessageType.TEXT


class MarkAsReadRequest(BaseModel):
    message_id: Optional[str] = None  # latest message when omitted


class LastMessage(BaseModel):
    id: str
    message_text: str
    sender_id: str
    message_type: str
    created_at: datetime


class ChatRoomResponse(BaseModel):
    id: str
    user1_id: str
    user2_id: str
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None
    other_user: Optional[UserSummary] = None
    last_message: Optional[LastMessage] = None
    unread_count: Optional[int] = None

    class Config:
        from_attributes = True


class ChatRoomListResponse(BaseModel):
    rooms: List[ChatRoomResponse]
    total: int
    page: int
    limit: int


class MessageSender(BaseModel):
    id: str
    name: str
    profile_photo: Optional[PhotoSummary] = None


class MessageResponse(BaseModel):
    id: str
    chat_room_id: str
    sender_id: str
    message_text: str
    message_type: MessageType
    is_read: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    sender: Optional[MessageSender] = None

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]
    total: int
    page: int
    limit: int


class MarkAsReadResponse(BaseModel):
    chat_room_id: str
    message_id: Optional[str] = None
    read_at: Optional[datetime] = None


class OnlineUsersResponse(BaseModel):
    user_ids: List[str]
    count: int


class OnlineStatusResponse(BaseModel):
    user_id: str
    is_online: bool
