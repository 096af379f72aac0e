"""
Push notification service using Firebase Cloud Messaging (FCM).
Handles device token management, per-user settings and message dispatching.
"""
from supabase import Client
from firebase_admin import messaging, exceptions as firebase_exceptions
from app.core.best_effort import run_best_effort
from app.core.exceptions import NotFoundError, UpstreamError, ValidationError
from app.database.supabase_client import row_or_none
from app.modules.notifications.firebase_client import get_messaging
from app.modules.notifications.schemas import (
    NotificationType, RegisterTokenRequest, DeactivateTokenRequest,
    NotificationSettingsUpdate, NotificationSettingsResponse, PushTokenResponse,
    NotificationHistoryItem, NotificationHistoryResponse
)
from typing import Any, Dict, List, Optional, Tuple
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "new_messages": True,
    "new_matches": True,
    "new_likes": True,
    "chat_messages": True,
    "marketing": False,
}

# notification type -> notification_settings column
SETTING_FOR_TYPE = {
    NotificationType.NEW_MESSAGE: "new_messages",
    NotificationType.NEW_MATCH: "new_matches",
    NotificationType.NEW_LIKE: "new_likes",
    NotificationType.CHAT_MESSAGE: "chat_messages",
}

# FCM reports these for tokens that will never work again
DEAD_TOKEN_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
    firebase_exceptions.InvalidArgumentError,
)


def render_template(notification_type: NotificationType, context: Dict[str, Any]) -> Tuple[str, str, Dict[str, Any]]:
    """Title, body and data payload for a templated notification."""
    if notification_type == NotificationType.NEW_MESSAGE:
        return (
            "New message",
            f"{context.get('sender_name', 'Someone')} sent you a message.",
            {"chat_room_id": context.get("chat_room_id"), "sender_id": context.get("sender_id")},
        )
    if notification_type == NotificationType.NEW_MATCH:
        return (
            "New match!",
            f"You matched with {context.get('matched_user_name', 'someone')}!",
            {"matched_user_id": context.get("matched_user_id")},
        )
    if notification_type == NotificationType.NEW_LIKE:
        return (
            "Someone likes you!",
            "You received a new like.",
            {"liked_by": context.get("liked_by")},
        )
    if notification_type == NotificationType.CHAT_MESSAGE:
        return (
            context.get("sender_name", "New message"),
            context.get("message", ""),
            {"chat_room_id": context.get("chat_room_id"), "sender_id": context.get("sender_id")},
        )
    return (
        context.get("title", "Notification"),
        context.get("body", ""),
        dict(context.get("custom_data") or {}),
    )


def _stringify(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # FCM data payload values must be strings
    return {str(k): str(v) for k, v in (data or {}).items() if v is not None}


class NotificationService:
    def __init__(self, supabase: Client, messaging_client=None):
        self.supabase = supabase
        self.messaging = messaging_client if messaging_client is not None else get_messaging()

    # sending

    def notify(self, user_id: str, notification_type: NotificationType, **context) -> bool:
        title, body, data = render_template(notification_type, context)
        return self.send(user_id, title, body, data, notification_type)

    def send(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        notification_type: NotificationType = NotificationType.SYSTEM
    ) -> bool:
        """Deliver to every active device of the user. False when push is off, muted or nothing was delivered."""
        if self.messaging is None:
            logger.warning("Firebase messaging not initialized. Cannot send notification.")
            return False

        prefs = self._load_settings_row(user_id)
        if not self.is_enabled(prefs, notification_type):
            logger.info(f"Notification disabled for user {user_id}, type: {notification_type.value}")
            return False

        tokens = self.get_active_tokens(user_id)
        if not tokens:
            logger.warning(f"No active device tokens found for user {user_id}")
            return False

        payload = _stringify({"type": notification_type.value, **(data or {})})
        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body),
            data=payload,
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(sound="default"),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
            ),
        )
        try:
            response = self.messaging.send_each_for_multicast(message)
        except Exception as e:
            logger.error(f"Error sending notification to user {user_id}: {str(e)}")
            self._save_history(user_id, title, body, payload, notification_type, False, str(e))
            raise UpstreamError(f"Push gateway failure: {str(e)}")

        error_message = None
        if response.failure_count > 0:
            failures = [
                f"token {idx}: {resp.exception}"
                for idx, resp in enumerate(response.responses)
                if not resp.success
            ]
            error_message = ", ".join(failures)
            logger.error(f"Failed to send to {response.failure_count} device(s) of user {user_id}: {error_message}")
            dead = [
                tokens[idx]
                for idx, resp in enumerate(response.responses)
                if not resp.success and isinstance(resp.exception, DEAD_TOKEN_ERRORS)
            ]
            if dead:
                run_best_effort(f"deactivate_tokens:{user_id}", self._deactivate_tokens, dead)

        success = response.success_count > 0
        if success:
            logger.info(f"Sent notification to user {user_id}: {response.success_count} device(s)")
        self._save_history(user_id, title, body, payload, notification_type, success, error_message)
        return success

    def _deactivate_tokens(self, tokens: List[str]) -> None:
        self.supabase.table("push_tokens")\
            .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})\
            .in_("token", tokens)\
            .execute()
        logger.info(f"Deactivated {len(tokens)} invalid device token(s)")

    def _save_history(self, user_id, title, body, data, notification_type, is_sent, error_message=None) -> None:
        row = {
            "user_id": user_id,
            "title": title,
            "body": body,
            "data": data,
            "notification_type": notification_type.value,
            "is_sent": is_sent,
            "sent_at": datetime.now(timezone.utc).isoformat() if is_sent else None,
            "error_message": error_message,
        }
        run_best_effort(
            f"notification_history:{user_id}",
            lambda: self.supabase.table("push_notifications").insert(row).execute(),
        )

    # settings

    @staticmethod
    def is_enabled(prefs: Dict[str, Any], notification_type: NotificationType) -> bool:
        column = SETTING_FOR_TYPE.get(notification_type)
        if column is None:
            return True  # system notifications are always delivered
        return prefs.get(column, DEFAULT_SETTINGS[column]) is not False

    def _load_settings_row(self, user_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("notification_settings")\
                .select("*")\
                .eq("user_id", user_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error loading notification settings for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to load notification settings: {str(e)}")
        return row_or_none(result) or {"user_id": user_id, **DEFAULT_SETTINGS}

    def get_settings(self, user_id: str) -> NotificationSettingsResponse:
        return NotificationSettingsResponse(**self._load_settings_row(user_id))

    def update_settings(self, user_id: str, update: NotificationSettingsUpdate) -> NotificationSettingsResponse:
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("No settings to update")
        try:
            current = self._load_settings_row(user_id)
            row = {**DEFAULT_SETTINGS, **{k: current[k] for k in DEFAULT_SETTINGS if k in current}, **changes}
            row["user_id"] = user_id
            row["updated_at"] = datetime.now(timezone.utc).isoformat()
            result = self.supabase.table("notification_settings")\
                .upsert(row, on_conflict="user_id")\
                .execute()
            return NotificationSettingsResponse(**(result.data[0] if result.data else row))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating notification settings for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to update notification settings: {str(e)}")

    # tokens

    def get_active_tokens(self, user_id: str) -> List[str]:
        try:
            result = self.supabase.table("push_tokens")\
                .select("token")\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()
            return [row["token"] for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Error getting device tokens for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get device tokens: {str(e)}")

    def register_token(self, user_id: str, request: RegisterTokenRequest) -> PushTokenResponse:
        try:
            now = datetime.now(timezone.utc).isoformat()
            if request.device_id:
                # the previous token of this device stops receiving
                self.supabase.table("push_tokens")\
                    .update({"is_active": False, "updated_at": now})\
                    .eq("user_id", user_id)\
                    .eq("device_id", request.device_id)\
                    .execute()
            result = self.supabase.table("push_tokens").insert({
                "user_id": user_id,
                "token": request.token,
                "device_type": request.device_type.value,
                "device_id": request.device_id,
                "app_version": request.app_version,
                "is_active": True,
            }).execute()
            if not result.data:
                raise UpstreamError("Failed to register device token")
            logger.info(f"Device token registered for user {user_id}")
            return PushTokenResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error registering device token: {str(e)}")
            raise UpstreamError(f"Failed to register device token: {str(e)}")

    def deactivate_token(self, user_id: str, request: DeactivateTokenRequest) -> int:
        """Deactivate by token, else by device, else every token of the user. Returns rows changed."""
        try:
            query = self.supabase.table("push_tokens")\
                .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})\
                .eq("user_id", user_id)
            if request.token:
                query = query.eq("token", request.token)
            elif request.device_id:
                query = query.eq("device_id", request.device_id)
            result = query.execute()
            return len(result.data or [])
        except Exception as e:
            logger.error(f"Error deactivating device token: {str(e)}")
            raise UpstreamError(f"Failed to deactivate device token: {str(e)}")

    def list_tokens(self, user_id: str) -> List[PushTokenResponse]:
        try:
            result = self.supabase.table("push_tokens")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [PushTokenResponse(**row) for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Error listing device tokens for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to list device tokens: {str(e)}")

    def delete_token(self, user_id: str, token_id: str) -> None:
        try:
            result = self.supabase.table("push_tokens")\
                .delete()\
                .eq("id", token_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting device token {token_id}: {str(e)}")
            raise UpstreamError(f"Failed to delete device token: {str(e)}")
        if not result.data:
            raise NotFoundError("Device token not found")

    # history

    def get_history(self, user_id: str, page: int = 1, limit: int = 20) -> NotificationHistoryResponse:
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("push_notifications")\
                .select("*", count="exact")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            return NotificationHistoryResponse(
                notifications=[NotificationHistoryItem(**row) for row in (result.data or [])],
                total=result.count or 0,
                page=page,
                limit=limit,
            )
        except Exception as e:
            logger.error(f"Error getting notification history for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get notification history: {str(e)}")
