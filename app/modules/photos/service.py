from supabase import Client
from app.core.exceptions import ForbiddenError, NotFoundError, UpstreamError, ValidationError
from app.database.supabase_client import row_or_none
from app.modules.discovery.geo import bounding_box, distance_km
from app.modules.photos.schemas import (
    ProfilePhotoResponse, TravelPhotoCreate, TravelPhotoUpdate, TravelPhotoResponse,
    TravelPhotoListResponse, NearbyPhotosResponse
)
from app.modules.photos.storage import PhotoStorage
from typing import Any, Dict, Optional
from fastapi import HTTPException, UploadFile
from datetime import datetime, timezone
import os
import uuid
import logging

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
PROFILE_PREFIX = "profile-photos"
TRAVEL_PREFIX = "travel-photos"


class PhotoService:
    def __init__(self, supabase: Client, storage: Optional[PhotoStorage] = None):
        self.supabase = supabase
        self.storage = storage

    async def _read_image(self, file: UploadFile) -> bytes:
        if not file or not file.filename:
            raise ValidationError("No file provided")
        if not (file.content_type or "").startswith("image/"):
            raise ValidationError("File must be an image")
        content = await file.read()
        if not content:
            raise ValidationError("File is empty")
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationError("File exceeds the 10MB limit")
        return content

    def _store(self, prefix: str, user_id: str, file: UploadFile, content: bytes):
        """Upload to S3, returning (object key, public url)"""
        if self.storage is None:
            raise UpstreamError("Photo storage is not configured")
        extension = os.path.splitext(file.filename)[1].lower()
        key = f"{prefix}/{user_id}/{uuid.uuid4().hex}{extension}"
        logger.info(f"Uploading to S3: {key}")
        try:
            url = self.storage.upload_file(content, key, file.content_type)
        except Exception as e:
            logger.error(f"S3 upload failed: {str(e)}")
            raise UpstreamError(f"Failed to upload to storage: {str(e)}")
        return key, url

    def _discard(self, key: str) -> None:
        if not self.storage.delete_file(key):
            logger.warning(f"Orphaned object left in S3: {key}")

    # Profile photos

    async def upload_profile_photo(self, user_id: str, file: UploadFile) -> ProfilePhotoResponse:
        """Upload a new profile photo; the previous active one is deactivated"""
        content = await self._read_image(file)
        key, url = self._store(PROFILE_PREFIX, user_id, file, content)
        try:
            self.supabase.table("profile_photos")\
                .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()

            result = self.supabase.table("profile_photos").insert({
                "user_id": user_id,
                "file_url": url,
                "file_name": file.filename,
                "file_size": len(content),
                "mime_type": file.content_type,
                "storage_path": key,
                "is_active": True,
            }).execute()
            if not result.data:
                raise UpstreamError("Failed to save profile photo")
            return ProfilePhotoResponse(**result.data[0])
        except Exception as e:
            self._discard(key)
            if isinstance(e, HTTPException):
                raise
            logger.error(f"Error saving profile photo for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to save profile photo: {str(e)}")

    def _active_profile_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("profile_photos")\
            .select("*")\
            .eq("user_id", user_id)\
            .eq("is_active", True)\
            .maybe_single()\
            .execute()
        return row_or_none(result)

    def get_profile_photo(self, user_id: str) -> ProfilePhotoResponse:
        try:
            row = self._active_profile_row(user_id)
        except Exception as e:
            logger.error(f"Error fetching profile photo for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get profile photo: {str(e)}")
        if not row:
            raise NotFoundError("No active profile photo found")
        return ProfilePhotoResponse(**row)

    def delete_profile_photo(self, user_id: str) -> None:
        try:
            row = self._active_profile_row(user_id)
            if not row:
                raise NotFoundError("No active profile photo found")
            if row.get("storage_path") and self.storage is not None:
                self._discard(row["storage_path"])
            self.supabase.table("profile_photos").delete().eq("id", row["id"]).execute()
            logger.info(f"Deleted profile photo {row['id']} of user {user_id}")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error deleting profile photo for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to delete profile photo: {str(e)}")

    # Travel photos

    async def upload_travel_photo(self, user_id: str, file: UploadFile, data: TravelPhotoCreate) -> TravelPhotoResponse:
        content = await self._read_image(file)
        key, url = self._store(TRAVEL_PREFIX, user_id, file, content)
        try:
            result = self.supabase.table("travel_photos").insert({
                "user_id": user_id,
                "file_url": url,
                "file_name": file.filename,
                "file_size": len(content),
                "mime_type": file.content_type,
                "storage_path": key,
                **data.model_dump(mode="json"),
                "is_deleted": False,
            }).execute()
            if not result.data:
                raise UpstreamError("Failed to save travel photo")
            return TravelPhotoResponse(**result.data[0])
        except Exception as e:
            self._discard(key)
            if isinstance(e, HTTPException):
                raise
            logger.error(f"Error saving travel photo for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to save travel photo: {str(e)}")

    def list_travel_photos(self, user_id: str, page: int = 1, limit: int = 20) -> TravelPhotoListResponse:
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("travel_photos")\
                .select("*", count="exact")\
                .eq("user_id", user_id)\
                .eq("is_deleted", False)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            return TravelPhotoListResponse(
                photos=[TravelPhotoResponse(**p) for p in (result.data or [])],
                total=result.count or 0,
                page=page,
                limit=limit
            )
        except Exception as e:
            logger.error(f"Error listing travel photos for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get travel photos: {str(e)}")

    def _get_travel_row(self, photo_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("travel_photos")\
                .select("*")\
                .eq("id", photo_id)\
                .eq("is_deleted", False)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching travel photo {photo_id}: {str(e)}")
            raise UpstreamError(f"Failed to get travel photo: {str(e)}")
        row = row_or_none(result)
        if not row:
            raise NotFoundError("Travel photo not found")
        return row

    def get_travel_photo(self, photo_id: str) -> TravelPhotoResponse:
        return TravelPhotoResponse(**self._get_travel_row(photo_id))

    def update_travel_photo(self, photo_id: str, user_id: str, data: TravelPhotoUpdate) -> TravelPhotoResponse:
        row = self._get_travel_row(photo_id)
        if row["user_id"] != user_id:
            raise ForbiddenError("You can only update your own photos")
        changes = data.model_dump(exclude_unset=True, mode="json")
        if not changes:
            raise ValidationError("No data to update")
        # explicit nulls would break the not-null coordinate columns
        for column in ("latitude", "longitude", "is_public"):
            if column in changes and changes[column] is None:
                raise ValidationError(f"{column} cannot be null")
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table("travel_photos")\
                .update(changes)\
                .eq("id", photo_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating travel photo {photo_id}: {str(e)}")
            raise UpstreamError(f"Failed to update travel photo: {str(e)}")
        if not result.data:
            raise NotFoundError("Travel photo not found")
        return TravelPhotoResponse(**result.data[0])

    def delete_travel_photo(self, photo_id: str, user_id: str) -> None:
        """Soft delete; the S3 object is kept"""
        row = self._get_travel_row(photo_id)
        if row["user_id"] != user_id:
            raise ForbiddenError("You can only delete your own photos")
        try:
            self.supabase.table("travel_photos")\
                .update({"is_deleted": True, "updated_at": datetime.now(timezone.utc).isoformat()})\
                .eq("id", photo_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting travel photo {photo_id}: {str(e)}")
            raise UpstreamError(f"Failed to delete travel photo: {str(e)}")

    def search_nearby_photos(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 10.0,
        limit: int = 20
    ) -> NearbyPhotosResponse:
        """Public photos within radius_km of a point, nearest first"""
        box = bounding_box(latitude, longitude, radius_km)
        try:
            query = self.supabase.table("travel_photos")\
                .select("*")\
                .eq("is_deleted", False)\
                .eq("is_public", True)\
                .gte("latitude", box.min_lat)\
                .lte("latitude", box.max_lat)
            if not box.crosses_antimeridian:
                query = query.gte("longitude", box.min_lon).lte("longitude", box.max_lon)
            rows = query.execute().data or []
        except Exception as e:
            logger.error(f"Error searching nearby photos: {str(e)}")
            raise UpstreamError(f"Failed to search photos: {str(e)}")

        hits = []
        for row in rows:
            if not box.contains(row["latitude"], row["longitude"]):
                continue
            d = distance_km(latitude, longitude, row["latitude"], row["longitude"])
            if d <= radius_km:
                hits.append((d, row))
        hits.sort(key=lambda hit: hit[0])

        photos = [TravelPhotoResponse(**row, distance_km=round(d, 2)) for d, row in hits[:limit]]
        return NearbyPhotosResponse(photos=photos, total=len(hits), search_radius_km=radius_km)
