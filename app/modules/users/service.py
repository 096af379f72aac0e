from supabase import Client
from app.core.exceptions import UserNotFoundError, UpstreamError, ValidationError
from app.database.supabase_client import row_or_none
from app.modules.users.schemas import (
    ProfileUpdate, LocationUpdate, LocationResponse, UserResponse,
    PublicUserResponse, DuplicateCheckResponse, PhotoSummary, UserSummary
)
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_row(self, user_id: str, columns: str = "*") -> Dict[str, Any]:
        """Raw users row; UserNotFoundError when absent."""
        try:
            result = self.supabase.table("users")\
                .select(columns)\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to fetch user: {str(e)}")
        row = row_or_none(result)
        if not row:
            raise UserNotFoundError()
        return row

    def get_user_by_id(self, user_id: str) -> UserResponse:
        return UserResponse(**self.get_user_row(user_id))

    def get_public_profile(self, user_id: str) -> PublicUserResponse:
        return PublicUserResponse(**self.get_user_row(user_id))

    def update_profile(self, user_id: str, profile: ProfileUpdate) -> UserResponse:
        """Update mbti / personality / job / bio; only fields that were sent are written."""
        update_data = profile.model_dump(exclude_unset=True, mode="json")
        if not update_data:
            raise ValidationError("No data to update")
        self.get_user_row(user_id, "id")
        try:
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
            result = self.supabase.table("users")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise UserNotFoundError()

            return UserResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating profile for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to update profile: {str(e)}")

    def update_location(self, user_id: str, location: LocationUpdate) -> LocationResponse:
        self.get_user_row(user_id, "id")
        try:
            now = datetime.now(timezone.utc).isoformat()
            result = self.supabase.table("users")\
                .update({
                    "last_latitude": location.latitude,
                    "last_longitude": location.longitude,
                    "last_location_name": location.location_name,
                    "last_location_updated_at": now,
                    "updated_at": now,
                })\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise UserNotFoundError()

            row = result.data[0]
            return LocationResponse(
                latitude=row["last_latitude"],
                longitude=row["last_longitude"],
                location_name=row.get("last_location_name"),
                updated_at=row.get("last_location_updated_at"),
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error updating location for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to update location: {str(e)}")

    def get_location(self, user_id: str) -> Optional[LocationResponse]:
        """Last coarse location, or None when the user never reported one"""
        row = self.get_user_row(
            user_id, "last_latitude, last_longitude, last_location_name, last_location_updated_at"
        )
        if row.get("last_latitude") is None or row.get("last_longitude") is None:
            return None
        return LocationResponse(
            latitude=row["last_latitude"],
            longitude=row["last_longitude"],
            location_name=row.get("last_location_name"),
            updated_at=row.get("last_location_updated_at"),
        )

    def get_summaries(self, user_ids: List[str]) -> Dict[str, UserSummary]:
        """Name, age, gender and active profile photo for each id, two queries in total."""
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return {}
        users = self.supabase.table("users")\
            .select("id, name, age, gender")\
            .in_("id", user_ids)\
            .execute().data or []
        photos = self.supabase.table("profile_photos")\
            .select("id, user_id, file_url, file_name")\
            .in_("user_id", user_ids)\
            .eq("is_active", True)\
            .execute().data or []
        photo_by_user = {p["user_id"]: PhotoSummary(**p) for p in photos}
        return {
            u["id"]: UserSummary(**u, profile_photo=photo_by_user.get(u["id"]))
            for u in users
        }

    def _exists(self, column: str, value: str) -> bool:
        try:
            result = self.supabase.table("users")\
                .select("id")\
                .eq(column, value)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Error checking users.{column}: {str(e)}")
            raise UpstreamError(f"Failed to check {column}: {str(e)}")

    def email_exists(self, email: str) -> bool:
        return self._exists("email", email)

    def name_exists(self, name: str) -> bool:
        return self._exists("name", name)

    def phone_exists(self, phone: str) -> bool:
        return self._exists("phone", phone)

    def check_email(self, email: str) -> DuplicateCheckResponse:
        taken = self.email_exists(email)
        return DuplicateCheckResponse(
            value=email,
            is_duplicate=taken,
            available=not taken,
            message="Email is already in use" if taken else "Email is available",
        )

    def check_name(self, name: str) -> DuplicateCheckResponse:
        taken = self.name_exists(name)
        return DuplicateCheckResponse(
            value=name,
            is_duplicate=taken,
            available=not taken,
            message="Name is already in use" if taken else "Name is available",
        )
