from enum import Enum
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from app.modules.chat.schemas import ChatRoomResponse
from app.modules.users.schemas import UserSummary


class LikeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class LikeDirection(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


class SendLikeRequest(BaseModel):
    receiver_id: str


class LikeResponse(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    status: LikeStatus = LikeStatus.PENDING
    created_at: datetime
    responded_at: Optional[datetime] = None
    is_match: bool = False

    class Config:
        from_attributes = True


class LikeWithUser(LikeResponse):
    user: Optional[UserSummary] = None  # the other party


class LikeListResponse(BaseModel):
    likes: List[LikeWithUser]
    total: int
    page: int
    limit: int
    type: LikeDirection


class MatchResponse(BaseModel):
    id: str
    user1_id: str
    user2_id: str
    matched_at: Optional[datetime] = None
    is_active: bool = True
    other_user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class MatchListResponse(BaseModel):
    matches: List[MatchResponse]
    total: int
    page: int
    limit: int


class AcceptLikeResponse(BaseModel):
    like: LikeResponse
    chat_room: Optional[ChatRoomResponse] = None
    message: str
