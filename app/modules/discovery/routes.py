from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.discovery.schemas import NearbyUsersRequest, NearbyUsersResponse
from app.modules.discovery.service import DiscoveryService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/discovery", tags=["discovery"])


def get_discovery_service(supabase: Client = Depends(get_supabase)) -> DiscoveryService:
    return DiscoveryService(supabase)


@router.post("/nearby-users", response_model=NearbyUsersResponse)
async def find_nearby_users(
    request: NearbyUsersRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """
    Find opposite-gender users whose travel photos were taken near yours.
    Costs one ticket per call (402 when none are left).
    """
    return service.find_nearby_users(user_data["id"], request)
