from enum import Enum
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"

    def opposite(self) -> "Gender":
        return Gender.FEMALE if self is Gender.MALE else Gender.MALE


class MBTIType(str, Enum):
    ENFP = "ENFP"
    ENFJ = "ENFJ"
    ENTP = "ENTP"
    ENTJ = "ENTJ"
    ESFP = "ESFP"
    ESFJ = "ESFJ"
    ESTP = "ESTP"
    ESTJ = "ESTJ"
    INFP = "INFP"
    INFJ = "INFJ"
    INTP = "INTP"
    INTJ = "INTJ"
    ISFP = "ISFP"
    ISFJ = "ISFJ"
    ISTP = "ISTP"
    ISTJ = "ISTJ"


class ProfileUpdate(BaseModel):
    mbti: Optional[MBTIType] = None
    personality: Optional[str] = Field(None, max_length=500)
    job: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)


class LocationUpdate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location_name: Optional[str] = None


class LocationResponse(BaseModel):
    latitude: float
    longitude: float
    location_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    phone_verified: bool = False
    gender: Gender
    age: int
    mbti: Optional[str] = None
    personality: Optional[str] = None
    job: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicUserResponse(BaseModel):
    """Profile as seen by other users (no contact details)"""
    id: str
    name: str
    gender: Gender
    age: int
    mbti: Optional[str] = None
    personality: Optional[str] = None
    job: Optional[str] = None
    bio: Optional[str] = None

    class Config:
        from_attributes = True


class CheckEmailRequest(BaseModel):
    email: EmailStr


class CheckNameRequest(BaseModel):
    name: str = Field(..., min_length=1)


class DuplicateCheckResponse(BaseModel):
    value: str
    is_duplicate: bool
    available: bool
    message: str


class PhotoSummary(BaseModel):
    id: str
    file_url: str
    file_name: Optional[str] = None


class UserSummary(BaseModel):
    """Other party of a like, match or chat room"""
    id: str
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    profile_photo: Optional[PhotoSummary] = None
