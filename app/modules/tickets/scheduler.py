import asyncio
import calendar
import logging
from datetime import datetime, timedelta, timezone
from supabase import Client
from app.config import settings
from app.database.supabase_client import SupabaseClient
from app.modules.tickets.service import TicketService, _today

logger = logging.getLogger(__name__)

PRUNE_WEEKDAY = 6  # Sunday


def _months_before(moment: datetime, months: int) -> datetime:
    year, month = moment.year, moment.month - months
    while month < 1:
        month += 12
        year -= 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _seconds_until_next_midnight(now: datetime) -> float:
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max((tomorrow - now).total_seconds(), 1.0)


def grant_daily_free_tickets(supabase: Client) -> int:
    """Give one free ticket to every user holding none who has not received one today. Returns grants made."""
    today = _today()
    result = supabase.table("user_tickets")\
        .select("*")\
        .eq("free_tickets", 0)\
        .or_(f"last_free_ticket_date.is.null,last_free_ticket_date.neq.{today}")\
        .execute()
    rows = result.data or []
    if not rows:
        logger.debug("No users eligible for a daily free ticket")
        return 0

    service = TicketService(supabase)
    granted = 0
    for row in rows:
        try:
            if service.grant_free_ticket_if_eligible(row):
                granted += 1
        except Exception as e:
            logger.error(f"Error granting daily free ticket to {row.get('user_id')}: {str(e)}")
    logger.info(f"Granted daily free tickets to {granted}/{len(rows)} eligible user(s)")
    return granted


def prune_ticket_transactions(supabase: Client, months: int = None) -> int:
    """Delete transaction history older than the retention window. Returns rows removed."""
    months = months or settings.ticket_history_retention_months
    cutoff = _months_before(datetime.now(timezone.utc), months)
    result = supabase.table("ticket_transactions")\
        .delete()\
        .lt("created_at", cutoff.isoformat())\
        .execute()
    removed = len(result.data or [])
    logger.info(f"Pruned {removed} ticket transaction(s) older than {cutoff.date().isoformat()}")
    return removed


async def run_daily_ticket_jobs(now: datetime = None):
    now = now or datetime.now(timezone.utc)
    supabase = SupabaseClient.get_service_client()
    try:
        grant_daily_free_tickets(supabase)
    except Exception as e:
        logger.error(f"Error in daily free ticket grant: {str(e)}")
    if now.weekday() == PRUNE_WEEKDAY:
        try:
            prune_ticket_transactions(supabase)
        except Exception as e:
            logger.error(f"Error pruning ticket transactions: {str(e)}")


async def ticket_scheduler_loop():
    """Background task: daily free-ticket grant at UTC midnight, weekly history pruning."""
    while True:
        delay = _seconds_until_next_midnight(datetime.now(timezone.utc))
        logger.info(f"Next ticket job run in {int(delay)}s")
        await asyncio.sleep(delay)
        try:
            await run_daily_ticket_jobs()
        except Exception as e:
            logger.error(f"Error in ticket scheduler loop: {str(e)}")
