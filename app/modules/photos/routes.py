from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from app.database.supabase_client import get_supabase
from app.modules.photos.schemas import (
    ProfilePhotoResponse, TravelPhotoCreate, TravelPhotoUpdate, TravelPhotoResponse,
    TravelPhotoListResponse, NearbyPhotosResponse
)
from app.modules.photos.service import PhotoService
from app.modules.photos.storage import PhotoStorage, get_photo_storage
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict, Optional
from datetime import datetime

router = APIRouter(prefix="/photos", tags=["photos"])


def get_photo_service(
    supabase: Client = Depends(get_supabase),
    storage: Optional[PhotoStorage] = Depends(get_photo_storage)
) -> PhotoService:
    return PhotoService(supabase, storage)


@router.post("/profile", response_model=ProfilePhotoResponse, status_code=201)
async def upload_profile_photo(
    file: UploadFile = File(...),
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    """Upload a profile photo (images only, 10MB max). Replaces the active one."""
    return await service.upload_profile_photo(user_data["id"], file)


@router.get("/profile/{user_id}", response_model=ProfilePhotoResponse)
async def get_profile_photo(
    user_id: str,
    service: PhotoService = Depends(get_photo_service)
):
    return service.get_profile_photo(user_id)


@router.delete("/profile", status_code=204)
async def delete_profile_photo(
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    service.delete_profile_photo(user_data["id"])
    return None


@router.post("/travel", response_model=TravelPhotoResponse, status_code=201)
async def upload_travel_photo(
    file: UploadFile = File(...),
    latitude: float = Form(..., ge=-90, le=90),
    longitude: float = Form(..., ge=-180, le=180),
    title: Optional[str] = Form(None, max_length=200),
    description: Optional[str] = Form(None),
    location_name: Optional[str] = Form(None, max_length=255),
    taken_at: Optional[datetime] = Form(None),
    is_public: bool = Form(True),
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    """
    Upload a travel photo tagged with where it was taken.
    Coordinates are required; public photos take part in discovery.
    """
    data = TravelPhotoCreate(
        latitude=latitude,
        longitude=longitude,
        title=title,
        description=description,
        location_name=location_name,
        taken_at=taken_at,
        is_public=is_public
    )
    return await service.upload_travel_photo(user_data["id"], file, data)


@router.get("/travel", response_model=TravelPhotoListResponse)
async def list_my_travel_photos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    return service.list_travel_photos(user_data["id"], page, limit)


@router.get("/travel/search/nearby", response_model=NearbyPhotosResponse)
async def search_nearby_travel_photos(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, ge=0.1, le=10000),
    limit: int = Query(20, ge=1, le=100),
    service: PhotoService = Depends(get_photo_service)
):
    return service.search_nearby_photos(latitude, longitude, radius_km, limit)


@router.get("/travel/{photo_id}", response_model=TravelPhotoResponse)
async def get_travel_photo(
    photo_id: str,
    service: PhotoService = Depends(get_photo_service)
):
    return service.get_travel_photo(photo_id)


@router.put("/travel/{photo_id}", response_model=TravelPhotoResponse)
async def update_travel_photo(
    photo_id: str,
    data: TravelPhotoUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    return service.update_travel_photo(photo_id, user_data["id"], data)


@router.delete("/travel/{photo_id}", status_code=204)
async def delete_travel_photo(
    photo_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: PhotoService = Depends(get_photo_service)
):
    service.delete_travel_photo(photo_id, user_data["id"])
    return None
