from supabase import Client
from app.core.best_effort import run_best_effort
from app.core.exceptions import InsufficientCreditError, UpstreamError, ValidationError
from app.modules.discovery.geo import distance_km, bounding_box
from app.modules.discovery.schemas import (
    NearbyUsersRequest, NearbyUsersResponse, NearbyUser, NearbyUserPhoto,
    LastLocation, AgeFilter
)
from app.modules.discovery.seen_users import SeenUserService
from app.modules.tickets.service import TicketService
from app.modules.users.schemas import Gender
from app.modules.users.service import UserService
from typing import Any, Dict, List, Optional
from fastapi import HTTPException
import uuid
import logging

logger = logging.getLogger(__name__)

PHOTO_COLUMNS = "id, user_id, file_url, file_name, latitude, longitude, title, description, location_name, taken_at, created_at"
CANDIDATE_COLUMNS = "id, name, age, gender, last_latitude, last_longitude, last_location_name, last_location_updated_at"


class _Candidate:
    __slots__ = ("user", "photos", "closest")

    def __init__(self, user: Dict[str, Any]):
        self.user = user
        self.photos: List[Dict[str, Any]] = []
        self.closest = float("inf")


def _has_location(row: Dict[str, Any]) -> bool:
    return row.get("last_latitude") is not None and row.get("last_longitude") is not None


def _to_photo(row: Dict[str, Any]) -> NearbyUserPhoto:
    return NearbyUserPhoto(**{k: row.get(k) for k in NearbyUserPhoto.model_fields})


class DiscoveryService:
    """
    Ticket-gated proximity search.

    A candidate qualifies when any of their public travel photos lies within
    radius_km of any of the searcher's public travel photos. Every lookup that
    can fail runs before the ticket is debited; the debit happens even when
    the searcher has no photos to search from.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.tickets = TicketService(supabase)
        self.users = UserService(supabase)
        self.seen_users = SeenUserService(supabase)

    def find_nearby_users(self, searcher_id: str, request: NearbyUsersRequest) -> NearbyUsersResponse:
        searcher = self.users.get_user_row(searcher_id, CANDIDATE_COLUMNS)
        try:
            target_gender = Gender(searcher.get("gender")).opposite()
        except ValueError:
            raise ValidationError("Searcher gender is not set")

        if not self.tickets.has_enough_tickets(searcher_id, 1):
            raise InsufficientCreditError()

        try:
            seen_ids = self.seen_users.get_seen_user_ids(searcher_id)
        except Exception as e:
            logger.error(f"Error loading seen users for {searcher_id}: {str(e)}")
            raise UpstreamError(f"Failed to load seen users: {str(e)}")

        search_id = str(uuid.uuid4())
        balance = self.tickets.use_ticket(
            searcher_id, description="Used for nearby users search", reference_id=search_id
        )
        logger.info(f"Discovery search {search_id} by {searcher_id} (radius {request.radius_km} km)")

        try:
            anchors = self._load_searcher_photos(searcher_id)
            if not anchors:
                return self._response(request, [], 0, balance.total_tickets)

            candidates = self._load_candidates(searcher_id, target_gender, request, seen_ids)
            matched = self._match(anchors, candidates, request.radius_km)

            profile_photos = {}
            if request.include_profile_photo and matched:
                profile_photos = self._load_profile_photos(list(matched.keys()))

            results = []
            for user_id, candidate in matched.items():
                results.append((candidate.closest, self._build_result(
                    searcher, candidate, profile_photos.get(user_id), request
                )))
            # sorted() is stable, ties keep discovery order
            results.sort(key=lambda item: item[0])
            ranked = [user for _, user in results]

            if ranked:
                run_best_effort(
                    f"seen_users:{searcher_id}",
                    self.seen_users.mark_seen,
                    searcher_id,
                    [user.id for user in ranked],
                )

            offset = (request.page - 1) * request.limit
            page = ranked[offset:offset + request.limit]
            return self._response(request, page, len(anchors), balance.total_tickets, total=len(ranked))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error in discovery search {search_id}: {str(e)}")
            raise UpstreamError(f"Failed to find nearby users: {str(e)}")

    def _load_searcher_photos(self, searcher_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("travel_photos")\
            .select("latitude, longitude")\
            .eq("user_id", searcher_id)\
            .eq("is_deleted", False)\
            .eq("is_public", True)\
            .execute()
        return [p for p in (result.data or []) if p.get("latitude") is not None and p.get("longitude") is not None]

    def _load_candidates(
        self,
        searcher_id: str,
        gender: Gender,
        request: NearbyUsersRequest,
        seen_ids: List[str]
    ) -> Dict[str, _Candidate]:
        query = self.supabase.table("users")\
            .select(CANDIDATE_COLUMNS)\
            .eq("gender", gender.value)\
            .neq("id", searcher_id)
        if request.min_age is not None:
            query = query.gte("age", request.min_age)
        if request.max_age is not None:
            query = query.lte("age", request.max_age)
        if seen_ids:
            query = query.not_.in_("id", seen_ids)
        users = query.execute().data or []
        if not users:
            return {}

        candidates = {u["id"]: _Candidate(u) for u in users}
        photos = self.supabase.table("travel_photos")\
            .select(PHOTO_COLUMNS)\
            .in_("user_id", list(candidates.keys()))\
            .eq("is_deleted", False)\
            .eq("is_public", True)\
            .order("created_at")\
            .execute().data or []
        for photo in photos:
            candidate = candidates.get(photo["user_id"])
            if candidate is not None:
                candidate.photos.append(photo)
        return candidates

    def _match(
        self,
        anchors: List[Dict[str, Any]],
        candidates: Dict[str, _Candidate],
        radius_km: float
    ) -> Dict[str, _Candidate]:
        """Keep candidates with at least one photo in range; collect those photos and the closest distance."""
        boxes = [(a["latitude"], a["longitude"], bounding_box(a["latitude"], a["longitude"], radius_km)) for a in anchors]
        matched: Dict[str, _Candidate] = {}
        for user_id, candidate in candidates.items():
            in_range = []
            for photo in candidate.photos:
                lat, lon = photo.get("latitude"), photo.get("longitude")
                if lat is None or lon is None:
                    continue
                best = None
                for a_lat, a_lon, box in boxes:
                    if not box.contains(lat, lon):
                        continue
                    d = distance_km(a_lat, a_lon, lat, lon)
                    if d <= radius_km and (best is None or d < best):
                        best = d
                if best is not None:
                    in_range.append(photo)
                    candidate.closest = min(candidate.closest, best)
            if in_range:
                candidate.photos = in_range
                matched[user_id] = candidate
        return matched

    def _load_profile_photos(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        result = self.supabase.table("profile_photos")\
            .select("id, user_id, file_url, file_name, created_at")\
            .in_("user_id", user_ids)\
            .eq("is_active", True)\
            .execute()
        return {row["user_id"]: row for row in (result.data or [])}

    def _build_result(
        self,
        searcher: Dict[str, Any],
        candidate: _Candidate,
        profile_photo: Optional[Dict[str, Any]],
        request: NearbyUsersRequest
    ) -> NearbyUser:
        user = candidate.user
        direct = None
        if request.include_direct_distance and _has_location(searcher) and _has_location(user):
            direct = round(distance_km(
                searcher["last_latitude"], searcher["last_longitude"],
                user["last_latitude"], user["last_longitude"],
            ), 2)

        last_location = None
        if request.include_last_location and _has_location(user):
            last_location = LastLocation(
                latitude=user["last_latitude"],
                longitude=user["last_longitude"],
                location_name=user.get("last_location_name"),
                updated_at=user.get("last_location_updated_at"),
            )

        return NearbyUser(
            id=user["id"],
            name=user["name"],
            age=user["age"],
            gender=user["gender"],
            profile_photo=_to_photo(profile_photo) if profile_photo else None,
            travel_photos=[_to_photo(p) for p in candidate.photos] if request.include_travel_photos else [],
            common_locations_count=len(candidate.photos),
            closest_distance_km=round(candidate.closest, 2),
            direct_distance_km=direct,
            last_location=last_location,
        )

    def _response(
        self,
        request: NearbyUsersRequest,
        users: List[NearbyUser],
        photos_count: int,
        remaining: int,
        total: int = 0
    ) -> NearbyUsersResponse:
        age_filter = None
        if request.min_age is not None or request.max_age is not None:
            age_filter = AgeFilter(min_age=request.min_age, max_age=request.max_age)
        return NearbyUsersResponse(
            users=users,
            total=total,
            page=request.page,
            limit=request.limit,
            user_photos_count=photos_count,
            search_radius_km=request.radius_km,
            age_filter=age_filter,
            remaining_tickets=remaining,
        )
