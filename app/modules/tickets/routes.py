from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.tickets.schemas import (
    UseTicketRequest, PurchaseTicketRequest, TicketBalanceResponse,
    TicketHistoryResponse, TicketCheckResponse, TicketStatisticsResponse
)
from app.modules.tickets.service import TicketService
from app.core.dependencies import get_current_user_id, require_super_user
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/tickets", tags=["tickets"])


def get_ticket_service(supabase: Client = Depends(get_supabase)) -> TicketService:
    return TicketService(supabase)


@router.get("/balance", response_model=TicketBalanceResponse)
async def get_balance(
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    return service.get_balance(user_data["id"])


@router.post("/claim-free", response_model=TicketBalanceResponse)
async def claim_free_ticket(
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    """Claim the daily free ticket (only when no free tickets remain)"""
    return service.claim_free_ticket(user_data["id"])


@router.post("/purchase", response_model=TicketBalanceResponse)
async def purchase_tickets(
    request: PurchaseTicketRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    # TODO: verify the store receipt before crediting once in-app payments are wired up
    return service.purchase_tickets(user_data["id"], request.amount, request.description)


@router.post("/use", response_model=TicketBalanceResponse)
async def use_ticket(
    request: UseTicketRequest,
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    return service.use_ticket(user_data["id"], request.description, request.reference_id)


@router.get("/history", response_model=TicketHistoryResponse)
async def get_ticket_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    return service.get_ticket_history(user_data["id"], page, limit)


@router.get("/check", response_model=TicketCheckResponse)
async def check_tickets(
    required: int = Query(1, ge=0),
    user_data: Dict = Depends(get_current_user_id),
    service: TicketService = Depends(get_ticket_service)
):
    user_id = user_data["id"]
    return TicketCheckResponse(
        user_id=user_id,
        required=required,
        has_enough=service.has_enough_tickets(user_id, required),
    )


@router.get("/statistics", response_model=TicketStatisticsResponse)
async def get_statistics(
    user_data: Dict = Depends(require_super_user),
    service: TicketService = Depends(get_ticket_service)
):
    return service.get_statistics()
