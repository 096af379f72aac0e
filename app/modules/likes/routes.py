from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.likes.schemas import (
    SendLikeRequest, LikeDirection, LikeResponse, LikeListResponse,
    MatchListResponse, AcceptLikeResponse
)
from app.modules.likes.service import LikeService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/likes", tags=["likes"])


def get_like_service(supabase: Client = Depends(get_supabase)) -> LikeService:
    return LikeService(supabase)


@router.post("", response_model=LikeResponse, status_code=201)
async def send_like(
    request: SendLikeRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: LikeService = Depends(get_like_service)
):
    return service.send_like(user_data["id"], request.receiver_id)


@router.get("", response_model=LikeListResponse)
async def get_likes(
    type: LikeDirection = Query(LikeDirection.RECEIVED),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: LikeService = Depends(get_like_service)
):
    return service.get_likes(user_data["id"], type, page, limit)


@router.get("/matches", response_model=MatchListResponse)
async def get_matches(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    active_only: bool = True,
    user_data: Dict = Depends(get_current_user_id),
    service: LikeService = Depends(get_like_service)
):
    return service.get_matches(user_data["id"], page, limit, active_only)


@router.post("/{like_id}/accept", response_model=AcceptLikeResponse)
async def accept_like(
    like_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: LikeService = Depends(get_like_service)
):
    """Accept a pending like you received; opens the chat room"""
    return service.accept_like(like_id, user_data["id"])


@router.post("/{like_id}/reject", response_model=LikeResponse)
async def reject_like(
    like_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: LikeService = Depends(get_like_service)
):
    return service.reject_like(like_id, user_data["id"])
