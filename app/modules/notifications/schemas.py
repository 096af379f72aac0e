from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class NotificationType(str, Enum):
    NEW_MESSAGE = "new_message"
    NEW_MATCH = "new_match"
    NEW_LIKE = "new_like"
    CHAT_MESSAGE = "chat_message"
    SYSTEM = "system"


class DeviceType(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class RegisterTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)
    device_type: DeviceType
    device_id: Optional[str] = None
    app_version: Optional[str] = None


class DeactivateTokenRequest(BaseModel):
    token: Optional[str] = None
    device_id: Optional[str] = None


class SendNotificationRequest(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None
    type: NotificationType = NotificationType.SYSTEM


class NotificationSettingsUpdate(BaseModel):
    new_messages: Optional[bool] = None
    new_matches: Optional[bool] = None
    new_likes: Optional[bool] = None
    chat_messages: Optional[bool] = None
    marketing: Optional[bool] = None


class NotificationSettingsResponse(BaseModel):
    user_id: str
    new_messages: bool = True
    new_matches: bool = True
    new_likes: bool = True
    chat_messages: bool = True
    marketing: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PushTokenResponse(BaseModel):
    id: str
    user_id: str
    token: str
    device_type: str
    device_id: Optional[str] = None
    app_version: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationHistoryItem(BaseModel):
    id: str
    user_id: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    notification_type: str
    is_sent: bool
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime


class NotificationHistoryResponse(BaseModel):
    notifications: List[NotificationHistoryItem]
    total: int
    page: int
    limit: int


class NotificationResultResponse(BaseModel):
    success: bool
    message: str


class NotificationStatusResponse(BaseModel):
    firebase_initialized: bool
    message: str
