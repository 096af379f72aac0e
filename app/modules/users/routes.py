from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.users.schemas import (
    ProfileUpdate, LocationUpdate, LocationResponse, UserResponse,
    PublicUserResponse, CheckEmailRequest, CheckNameRequest, DuplicateCheckResponse
)
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    return service.get_user_by_id(user_data["id"])


@router.put("/me", response_model=UserResponse)
async def update_me(
    profile: ProfileUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Update mbti, personality, job and bio"""
    return service.update_profile(user_data["id"], profile)


@router.post("/me/location", response_model=LocationResponse)
async def update_my_location(
    location: LocationUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    return service.update_location(user_data["id"], location)


# Duplicate checks run before sign-up, so no token is required
@router.post("/check-email", response_model=DuplicateCheckResponse)
async def check_email(
    request: CheckEmailRequest,
    service: UserService = Depends(get_user_service)
):
    return service.check_email(request.email)


@router.post("/check-name", response_model=DuplicateCheckResponse)
async def check_name(
    request: CheckNameRequest,
    service: UserService = Depends(get_user_service)
):
    return service.check_name(request.name)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    return service.get_public_profile(user_id)


@router.get("/{user_id}/location", response_model=Optional[LocationResponse])
async def get_user_location(
    user_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    return service.get_location(user_id)
