from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class TransactionType(str, Enum):
    EARNED_FREE = "earned_free"
    PURCHASED = "purchased"
    USED = "used"
    EXPIRED = "expired"


class TicketType(str, Enum):
    FREE = "free"
    PAID = "paid"


class UseTicketRequest(BaseModel):
    description: Optional[str] = None
    reference_id: Optional[str] = None  # search id etc.


class PurchaseTicketRequest(BaseModel):
    amount: int = Field(..., ge=1)
    description: Optional[str] = None


class TicketBalanceResponse(BaseModel):
    user_id: str
    free_tickets: int
    paid_tickets: int
    total_tickets: int  # free_tickets + paid_tickets
    total_purchased_tickets: int
    last_free_ticket_date: Optional[str] = None
    can_get_free_ticket: bool


class TicketTransactionResponse(BaseModel):
    id: str
    user_id: str
    transaction_type: TransactionType
    ticket_type: TicketType
    amount: int
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TicketHistoryResponse(BaseModel):
    transactions: List[TicketTransactionResponse]
    total_count: int
    current_page: int
    total_pages: int


class TicketCheckResponse(BaseModel):
    user_id: str
    required: int
    has_enough: bool


class TicketStatisticsResponse(BaseModel):
    total_users: int
    today_recipients: int
    total_free_tickets: int
    total_paid_tickets: int
    total_tickets_in_circulation: int
