from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.notifications.firebase_client import FirebaseClient
from app.modules.notifications.schemas import (
    RegisterTokenRequest, DeactivateTokenRequest, SendNotificationRequest,
    NotificationSettingsUpdate, NotificationSettingsResponse, PushTokenResponse,
    NotificationHistoryResponse, NotificationResultResponse, NotificationStatusResponse
)
from app.modules.notifications.service import NotificationService
from app.core.dependencies import get_current_user_id, require_super_user
from supabase import Client
from typing import Dict, List

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(supabase: Client = Depends(get_supabase)) -> NotificationService:
    return NotificationService(supabase)


@router.post("/tokens", response_model=PushTokenResponse, status_code=201)
async def register_token(
    request: RegisterTokenRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.register_token(user_data["id"], request)


@router.post("/tokens/deactivate", response_model=NotificationResultResponse)
async def deactivate_token(
    request: DeactivateTokenRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    count = service.deactivate_token(user_data["id"], request)
    return NotificationResultResponse(success=True, message=f"Deactivated {count} token(s)")


@router.get("/tokens", response_model=List[PushTokenResponse])
async def list_tokens(
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.list_tokens(user_data["id"])


@router.delete("/tokens/{token_id}", status_code=204)
async def delete_token(
    token_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    service.delete_token(user_data["id"], token_id)
    return None


@router.get("/settings", response_model=NotificationSettingsResponse)
async def get_settings(
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.get_settings(user_data["id"])


@router.put("/settings", response_model=NotificationSettingsResponse)
async def update_settings(
    update: NotificationSettingsUpdate,
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.update_settings(user_data["id"], update)


@router.get("/history", response_model=NotificationHistoryResponse)
async def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service)
):
    return service.get_history(user_data["id"], page, limit)


@router.post("/send", response_model=NotificationResultResponse)
async def send_notification(
    request: SendNotificationRequest,
    user_data: Dict = Depends(require_super_user),
    service: NotificationService = Depends(get_notification_service)
):
    """Send a notification to any user (super users only)"""
    sent = service.send(request.user_id, request.title, request.body, request.data, request.type)
    return NotificationResultResponse(
        success=sent,
        message="Notification sent" if sent else "Notification was not delivered",
    )


@router.get("/status", response_model=NotificationStatusResponse)
async def get_status():
    initialized = FirebaseClient.get_messaging() is not None
    return NotificationStatusResponse(
        firebase_initialized=initialized,
        message="Push notifications enabled" if initialized else "Push notifications disabled",
    )
