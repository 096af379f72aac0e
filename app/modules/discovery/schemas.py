from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from app.config import settings


class NearbyUsersRequest(BaseModel):
    radius_km: float = Field(default_factory=lambda: settings.discovery_default_radius_km, ge=0.1)
    min_age: Optional[int] = Field(None, ge=18, le=100)
    max_age: Optional[int] = Field(None, ge=18, le=100)
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=50)
    include_profile_photo: bool = True
    include_travel_photos: bool = True
    include_direct_distance: bool = True
    include_last_location: bool = False

    @field_validator("radius_km")
    @classmethod
    def check_radius(cls, v: float) -> float:
        if v > settings.discovery_max_radius_km:
            raise ValueError(f"radius_km must not exceed {settings.discovery_max_radius_km:g}")
        return v

    @model_validator(mode="after")
    def check_age_range(self):
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age must not exceed max_age")
        return self


class NearbyUserPhoto(BaseModel):
    id: str
    file_url: str
    file_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    title: Optional[str] = None
    description: Optional[str] = None
    location_name: Optional[str] = None
    taken_at: Optional[str] = None
    created_at: Optional[str] = None


class LastLocation(BaseModel):
    latitude: float
    longitude: float
    location_name: Optional[str] = None
    updated_at: Optional[str] = None


class NearbyUser(BaseModel):
    id: str
    name: str
    age: int
    gender: str
    profile_photo: Optional[NearbyUserPhoto] = None
    travel_photos: List[NearbyUserPhoto] = []
    common_locations_count: int  # candidate photos within the radius
    closest_distance_km: float
    direct_distance_km: Optional[float] = None
    last_location: Optional[LastLocation] = None


class AgeFilter(BaseModel):
    min_age: Optional[int] = None
    max_age: Optional[int] = None


class NearbyUsersResponse(BaseModel):
    users: List[NearbyUser]
    total: int
    page: int
    limit: int
    user_photos_count: int  # searcher photos used as anchors
    search_radius_km: float
    age_filter: Optional[AgeFilter] = None
    remaining_tickets: Optional[int] = None
