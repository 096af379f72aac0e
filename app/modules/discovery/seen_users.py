from supabase import Client
from datetime import datetime, timezone
from typing import Iterable, List
import logging

logger = logging.getLogger(__name__)


class SeenUserService:
    """Directed (searcher, seen user) exclusion records. Entries never expire."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_seen_user_ids(self, searcher_id: str) -> List[str]:
        result = self.supabase.table("seen_users")\
            .select("seen_user_id")\
            .eq("searcher_id", searcher_id)\
            .execute()
        return [row["seen_user_id"] for row in (result.data or [])]

    def mark_seen(self, searcher_id: str, seen_user_ids: Iterable[str]) -> int:
        """Upsert one row per seen user, bumping seen_count. Returns rows written."""
        seen_user_ids = list(dict.fromkeys(seen_user_ids))
        if not seen_user_ids:
            return 0

        existing = self.supabase.table("seen_users")\
            .select("seen_user_id, seen_count")\
            .eq("searcher_id", searcher_id)\
            .in_("seen_user_id", seen_user_ids)\
            .execute()
        counts = {row["seen_user_id"]: row.get("seen_count") or 0 for row in (existing.data or [])}

        now = datetime.now(timezone.utc).isoformat()
        rows = [
            {
                "searcher_id": searcher_id,
                "seen_user_id": seen_user_id,
                "last_seen_at": now,
                "seen_count": counts.get(seen_user_id, 0) + 1,
            }
            for seen_user_id in seen_user_ids
        ]
        self.supabase.table("seen_users")\
            .upsert(rows, on_conflict="searcher_id,seen_user_id")\
            .execute()
        logger.debug(f"Marked {len(rows)} user(s) as seen by {searcher_id}")
        return len(rows)
