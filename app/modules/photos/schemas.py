from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class ProfilePhotoResponse(BaseModel):
    id: str
    user_id: str
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TravelPhotoCreate(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    location_name: Optional[str] = Field(None, max_length=255)
    taken_at: Optional[datetime] = None
    is_public: bool = True


class TravelPhotoUpdate(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    location_name: Optional[str] = Field(None, max_length=255)
    taken_at: Optional[datetime] = None
    is_public: Optional[bool] = None


class TravelPhotoResponse(BaseModel):
    id: str
    user_id: str
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    latitude: float
    longitude: float
    title: Optional[str] = None
    description: Optional[str] = None
    location_name: Optional[str] = None
    taken_at: Optional[datetime] = None
    is_public: bool = True
    is_deleted: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None
    distance_km: Optional[float] = None  # only set by nearby search

    class Config:
        from_attributes = True


class TravelPhotoListResponse(BaseModel):
    photos: List[TravelPhotoResponse]
    total: int
    page: int
    limit: int


class NearbyPhotosResponse(BaseModel):
    photos: List[TravelPhotoResponse]
    total: int
    search_radius_km: float
