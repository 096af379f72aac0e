from supabase import Client
from app.config import settings
from app.core.best_effort import run_best_effort
from app.core.exceptions import (
    ConflictError, InsufficientCreditError, AlreadyClaimedError,
    HasExistingFreeTicketsError, UpstreamError, ValidationError
)
from app.database.supabase_client import row_or_none, is_unique_violation
from app.modules.tickets.schemas import (
    TicketBalanceResponse, TicketHistoryResponse, TicketTransactionResponse,
    TicketStatisticsResponse, TransactionType, TicketType
)
from typing import Any, Dict, Optional
from fastapi import HTTPException
from datetime import datetime, timezone
import math
import logging

logger = logging.getLogger(__name__)

# Conditional updates that lose a race re-read the row and try again this many times
MAX_UPDATE_ATTEMPTS = 3


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class TicketService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _fetch_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("user_tickets")\
            .select("*")\
            .eq("user_id", user_id)\
            .maybe_single()\
            .execute()
        return row_or_none(result)

    def _get_or_create_row(self, user_id: str) -> Dict[str, Any]:
        """Return the balance row, creating it with the initial free allocation on first access."""
        row = self._fetch_row(user_id)
        if row:
            return row
        try:
            result = self.supabase.table("user_tickets").insert({
                "user_id": user_id,
                "free_tickets": settings.initial_free_tickets,
                "paid_tickets": 0,
                "total_purchased_tickets": 0,
                "last_free_ticket_date": _today(),
            }).execute()
        except Exception as e:
            # Another request initialized the row first
            if is_unique_violation(e):
                row = self._fetch_row(user_id)
                if row:
                    return row
            raise
        if not result.data:
            raise UpstreamError("Failed to initialize user tickets")
        if settings.initial_free_tickets > 0:
            self._record_transaction(
                user_id,
                TransactionType.EARNED_FREE,
                TicketType.FREE,
                settings.initial_free_tickets,
                "Initial free ticket",
            )
        return result.data[0]

    def _compare_and_set(self, user_id: str, expected: Dict[str, Any], changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply changes only if every expected column still holds the value we read. None when the row moved on."""
        query = self.supabase.table("user_tickets")\
            .update({**changes, "updated_at": datetime.now(timezone.utc).isoformat()})\
            .eq("user_id", user_id)
        for column, value in expected.items():
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        result = query.execute()
        return result.data[0] if result.data else None

    def _insert_transaction(
        self,
        user_id: str,
        transaction_type: TransactionType,
        ticket_type: TicketType,
        amount: int,
        description: str,
        reference_id: Optional[str] = None
    ) -> None:
        self.supabase.table("ticket_transactions").insert({
            "user_id": user_id,
            "transaction_type": transaction_type.value,
            "ticket_type": ticket_type.value,
            "amount": amount,
            "description": description,
            "reference_id": reference_id,
        }).execute()

    def _record_transaction(self, user_id: str, *args, **kwargs) -> None:
        # A lost transaction row never reverts the balance change
        run_best_effort(f"ticket_transaction:{user_id}", self._insert_transaction, user_id, *args, **kwargs)

    @staticmethod
    def can_get_free_ticket_today(last_free_ticket_date: Optional[str], free_tickets: int) -> bool:
        if free_tickets > 0:
            return False
        if not last_free_ticket_date:
            return True
        return str(last_free_ticket_date)[:10] != _today()

    def _to_balance(self, row: Dict[str, Any]) -> TicketBalanceResponse:
        return TicketBalanceResponse(
            user_id=row["user_id"],
            free_tickets=row["free_tickets"],
            paid_tickets=row["paid_tickets"],
            total_tickets=row["free_tickets"] + row["paid_tickets"],
            total_purchased_tickets=row.get("total_purchased_tickets") or 0,
            last_free_ticket_date=row.get("last_free_ticket_date"),
            can_get_free_ticket=self.can_get_free_ticket_today(
                row.get("last_free_ticket_date"), row["free_tickets"]
            ),
        )

    def get_balance(self, user_id: str) -> TicketBalanceResponse:
        """Current balance; lazily initializes the user's ticket row."""
        try:
            return self._to_balance(self._get_or_create_row(user_id))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting ticket balance for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get ticket balance: {str(e)}")

    def claim_free_ticket(self, user_id: str) -> TicketBalanceResponse:
        """Daily free ticket, only when the user holds no free tickets and has not been granted one today."""
        try:
            for _ in range(MAX_UPDATE_ATTEMPTS):
                row = self._get_or_create_row(user_id)
                if row["free_tickets"] > 0:
                    raise HasExistingFreeTicketsError()
                today = _today()
                last_date = row.get("last_free_ticket_date")
                if last_date and str(last_date)[:10] == today:
                    raise AlreadyClaimedError()

                updated = self._compare_and_set(
                    user_id,
                    {"free_tickets": 0, "last_free_ticket_date": last_date},
                    {"free_tickets": 1, "last_free_ticket_date": today},
                )
                if updated:
                    self._record_transaction(
                        user_id, TransactionType.EARNED_FREE, TicketType.FREE, 1, "Daily free ticket"
                    )
                    return self._to_balance(updated)
                logger.info(f"Ticket row for {user_id} changed during claim, retrying")
            raise ConflictError("Ticket balance changed concurrently, please retry")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error claiming free ticket for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to claim free ticket: {str(e)}")

    def purchase_tickets(self, user_id: str, amount: int, description: Optional[str] = None) -> TicketBalanceResponse:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise ValidationError("Ticket amount must be a positive integer")
        try:
            for _ in range(MAX_UPDATE_ATTEMPTS):
                row = self._get_or_create_row(user_id)
                total_purchased = row.get("total_purchased_tickets") or 0
                updated = self._compare_and_set(
                    user_id,
                    {"paid_tickets": row["paid_tickets"], "total_purchased_tickets": total_purchased},
                    {
                        "paid_tickets": row["paid_tickets"] + amount,
                        "total_purchased_tickets": total_purchased + amount,
                    },
                )
                if updated:
                    self._record_transaction(
                        user_id,
                        TransactionType.PURCHASED,
                        TicketType.PAID,
                        amount,
                        description or f"Purchased {amount} tickets",
                    )
                    return self._to_balance(updated)
                logger.info(f"Ticket row for {user_id} changed during purchase, retrying")
            raise ConflictError("Ticket balance changed concurrently, please retry")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error purchasing tickets for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to purchase tickets: {str(e)}")

    def use_ticket(self, user_id: str, description: Optional[str] = None, reference_id: Optional[str] = None) -> TicketBalanceResponse:
        """Debit one ticket, free before paid, as a conditional decrement."""
        try:
            for _ in range(MAX_UPDATE_ATTEMPTS):
                row = self._get_or_create_row(user_id)
                if row["free_tickets"] + row["paid_tickets"] <= 0:
                    raise InsufficientCreditError()

                if row["free_tickets"] > 0:
                    column, ticket_type = "free_tickets", TicketType.FREE
                else:
                    column, ticket_type = "paid_tickets", TicketType.PAID

                updated = self._compare_and_set(user_id, {column: row[column]}, {column: row[column] - 1})
                if updated:
                    self._record_transaction(
                        user_id,
                        TransactionType.USED,
                        ticket_type,
                        -1,
                        description or f"Used {ticket_type.value} ticket for search",
                        reference_id,
                    )
                    return self._to_balance(updated)
                logger.info(f"Ticket row for {user_id} changed during debit, retrying")
            raise ConflictError("Ticket balance changed concurrently, please retry")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error using ticket for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to use ticket: {str(e)}")

    def has_enough_tickets(self, user_id: str, required: int = 1) -> bool:
        """Read-only check. A user without a ticket row is judged on the allocation they will receive."""
        if required < 0:
            raise ValidationError("Required tickets cannot be negative")
        try:
            row = self._fetch_row(user_id)
            if not row:
                return settings.initial_free_tickets >= required
            return row["free_tickets"] + row["paid_tickets"] >= required
        except Exception as e:
            logger.error(f"Error checking tickets for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to check tickets: {str(e)}")

    def grant_free_ticket_if_eligible(self, row: Dict[str, Any]) -> bool:
        """Scheduler path: grant one free ticket to a row that holds none and got none today."""
        if not self.can_get_free_ticket_today(row.get("last_free_ticket_date"), row["free_tickets"]):
            return False
        updated = self._compare_and_set(
            row["user_id"],
            {"free_tickets": 0, "last_free_ticket_date": row.get("last_free_ticket_date")},
            {"free_tickets": 1, "last_free_ticket_date": _today()},
        )
        if not updated:
            return False
        self._record_transaction(
            row["user_id"], TransactionType.EARNED_FREE, TicketType.FREE, 1, "Daily free ticket (auto-granted)"
        )
        return True

    def get_ticket_history(self, user_id: str, page: int = 1, limit: int = 20) -> TicketHistoryResponse:
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("ticket_transactions")\
                .select("*", count="exact")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()

            total = result.count or 0
            return TicketHistoryResponse(
                transactions=[TicketTransactionResponse(**tx) for tx in (result.data or [])],
                total_count=total,
                current_page=page,
                total_pages=math.ceil(total / limit) if limit else 0,
            )
        except Exception as e:
            logger.error(f"Error getting ticket history for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get ticket history: {str(e)}")

    def get_statistics(self) -> TicketStatisticsResponse:
        try:
            rows = self.supabase.table("user_tickets")\
                .select("free_tickets, paid_tickets, last_free_ticket_date")\
                .execute().data or []
            today = _today()
            total_free = sum(r.get("free_tickets") or 0 for r in rows)
            total_paid = sum(r.get("paid_tickets") or 0 for r in rows)
            return TicketStatisticsResponse(
                total_users=len(rows),
                today_recipients=sum(1 for r in rows if str(r.get("last_free_ticket_date") or "")[:10] == today),
                total_free_tickets=total_free,
                total_paid_tickets=total_paid,
                total_tickets_in_circulation=total_free + total_paid,
            )
        except Exception as e:
            logger.error(f"Error getting ticket statistics: {str(e)}")
            raise UpstreamError(f"Failed to get ticket statistics: {str(e)}")
