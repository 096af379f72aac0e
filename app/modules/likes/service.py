from supabase import Client
from app.core.best_effort import run_best_effort
from app.core.exceptions import (
    AlreadyLikedError, AlreadyRespondedError, ForbiddenError, NotFoundError,
    SelfLikeError, UpstreamError
)
from app.core.pairs import canonical_pair, UserPair
from app.database.supabase_client import row_or_none, is_unique_violation
from app.modules.chat.service import ChatService
from app.modules.likes.schemas import (
    LikeStatus, LikeDirection, LikeResponse, LikeWithUser, LikeListResponse,
    MatchResponse, MatchListResponse, AcceptLikeResponse
)
from app.modules.notifications.schemas import NotificationType
from app.modules.notifications.service import NotificationService
from app.modules.users.service import UserService
from typing import Any, Dict, Optional, Set
from fastapi import HTTPException
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


class LikeService:
    def __init__(
        self,
        supabase: Client,
        chat: Optional[ChatService] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.supabase = supabase
        self.users = UserService(supabase)
        self._notifications = notifications
        self._chat = chat

    @property
    def notifications(self) -> NotificationService:
        if self._notifications is None:
            self._notifications = NotificationService(self.supabase)
        return self._notifications

    @property
    def chat(self) -> ChatService:
        if self._chat is None:
            self._chat = ChatService(self.supabase, self.notifications)
        return self._chat

    def _get_like(self, like_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("likes")\
                .select("*")\
                .eq("id", like_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching like {like_id}: {str(e)}")
            raise UpstreamError(f"Failed to fetch like: {str(e)}")
        like = row_or_none(result)
        if not like:
            raise NotFoundError("Like not found")
        return like

    def _upsert_match(self, pair: UserPair) -> bool:
        """Create the pair's match if missing. True when this call created it."""
        result = self.supabase.table("matches")\
            .upsert({**pair.as_row(), "is_active": True}, on_conflict="user1_id,user2_id", ignore_duplicates=True)\
            .execute()
        return bool(result.data)

    def _names(self, *user_ids: str) -> Dict[str, str]:
        result = run_best_effort("like_names", self.users.get_summaries, list(user_ids))
        summaries = result.value if result.ok else {}
        return {uid: s.name for uid, s in (summaries or {}).items()}

    def _notify_match(self, pair: UserPair) -> None:
        names = self._names(pair.user1_id, pair.user2_id)
        for user_id in pair:
            other = pair.other(user_id)
            run_best_effort(
                f"push:new_match:{user_id}",
                self.notifications.notify,
                user_id,
                NotificationType.NEW_MATCH,
                matched_user_name=names.get(other, "someone"),
                matched_user_id=other,
            )

    def send_like(self, sender_id: str, receiver_id: str) -> LikeResponse:
        """Like another user. A reciprocal like turns the pair into a match."""
        if sender_id == receiver_id:
            raise SelfLikeError()
        self.users.get_user_row(receiver_id, "id")

        try:
            try:
                result = self.supabase.table("likes").insert({
                    "sender_id": sender_id,
                    "receiver_id": receiver_id,
                    "status": LikeStatus.PENDING.value,
                }).execute()
            except Exception as e:
                if is_unique_violation(e):
                    raise AlreadyLikedError()
                raise
            if not result.data:
                raise UpstreamError("Failed to send like")
            like = result.data[0]

            reciprocal = self.supabase.table("likes")\
                .select("id")\
                .eq("sender_id", receiver_id)\
                .eq("receiver_id", sender_id)\
                .execute()

            is_match = bool(reciprocal.data)
            if is_match:
                pair = canonical_pair(sender_id, receiver_id)
                if self._upsert_match(pair):
                    logger.info(f"New match between {pair.user1_id} and {pair.user2_id}")
                    self._notify_match(pair)
                run_best_effort(f"chat_room:{pair.user1_id}:{pair.user2_id}", self.chat.create_chat_room, sender_id, receiver_id)
            else:
                names = self._names(sender_id)
                run_best_effort(
                    f"push:new_like:{receiver_id}",
                    self.notifications.notify,
                    receiver_id,
                    NotificationType.NEW_LIKE,
                    liked_by=names.get(sender_id, "someone"),
                )
            return LikeResponse(**like, is_match=is_match)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error sending like {sender_id} -> {receiver_id}: {str(e)}")
            raise UpstreamError(f"Failed to send like: {str(e)}")

    def _respond(self, like_id: str, user_id: str, new_status: LikeStatus) -> Dict[str, Any]:
        like = self._get_like(like_id)
        if like["receiver_id"] != user_id:
            raise ForbiddenError("Only the receiver can respond to this like")
        if like["status"] != LikeStatus.PENDING.value:
            raise AlreadyRespondedError()
        try:
            result = self.supabase.table("likes")\
                .update({"status": new_status.value, "responded_at": datetime.now(timezone.utc).isoformat()})\
                .eq("id", like_id)\
                .eq("status", LikeStatus.PENDING.value)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating like {like_id}: {str(e)}")
            raise UpstreamError(f"Failed to respond to like: {str(e)}")
        if not result.data:
            # answered concurrently
            raise AlreadyRespondedError()
        return result.data[0]

    def accept_like(self, like_id: str, user_id: str) -> AcceptLikeResponse:
        like = self._respond(like_id, user_id, LikeStatus.ACCEPTED)
        pair = canonical_pair(like["sender_id"], like["receiver_id"])
        try:
            created = self._upsert_match(pair)
        except Exception as e:
            logger.error(f"Error creating match for like {like_id}: {str(e)}")
            raise UpstreamError(f"Failed to create match: {str(e)}")

        room = run_best_effort(f"chat_room:{pair.user1_id}:{pair.user2_id}", self.chat.create_chat_room, user_id, like["sender_id"])

        names = self._names(user_id)
        run_best_effort(
            f"push:new_match:{like['sender_id']}",
            self.notifications.notify,
            like["sender_id"],
            NotificationType.NEW_MATCH,
            matched_user_name=names.get(user_id, "someone"),
            matched_user_id=user_id,
        )
        if created:
            logger.info(f"Like {like_id} accepted, new match {pair.user1_id} / {pair.user2_id}")
        return AcceptLikeResponse(
            like=LikeResponse(**like, is_match=True),
            chat_room=room.value if room.ok else None,
            message="Like accepted. You can start chatting now!",
        )

    def reject_like(self, like_id: str, user_id: str) -> LikeResponse:
        like = self._respond(like_id, user_id, LikeStatus.REJECTED)
        return LikeResponse(**like)

    def _matched_user_ids(self, user_id: str) -> Set[str]:
        result = self.supabase.table("matches")\
            .select("user1_id, user2_id")\
            .or_(f"user1_id.eq.{user_id},user2_id.eq.{user_id}")\
            .eq("is_active", True)\
            .execute()
        return {UserPair(m["user1_id"], m["user2_id"]).other(user_id) for m in (result.data or [])}

    def get_likes(
        self,
        user_id: str,
        direction: LikeDirection = LikeDirection.RECEIVED,
        page: int = 1,
        limit: int = 20
    ) -> LikeListResponse:
        """Likes sent or received, newest first, with the other user and match status"""
        own_column = "sender_id" if direction == LikeDirection.SENT else "receiver_id"
        other_column = "receiver_id" if direction == LikeDirection.SENT else "sender_id"
        try:
            offset = (page - 1) * limit
            result = self.supabase.table("likes")\
                .select("*", count="exact")\
                .eq(own_column, user_id)\
                .order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            likes = result.data or []
            summaries = self.users.get_summaries([l[other_column] for l in likes])
            matched = self._matched_user_ids(user_id) if likes else set()

            items = [
                LikeWithUser(
                    **like,
                    user=summaries.get(like[other_column]),
                    is_match=like[other_column] in matched,
                )
                for like in likes
            ]
            return LikeListResponse(likes=items, total=result.count or 0, page=page, limit=limit, type=direction)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting likes for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get likes: {str(e)}")

    def get_matches(self, user_id: str, page: int = 1, limit: int = 20, active_only: bool = True) -> MatchListResponse:
        try:
            offset = (page - 1) * limit
            query = self.supabase.table("matches")\
                .select("*", count="exact")\
                .or_(f"user1_id.eq.{user_id},user2_id.eq.{user_id}")
            if active_only:
                query = query.eq("is_active", True)
            result = query\
                .order("matched_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            matches = result.data or []
            others = [UserPair(m["user1_id"], m["user2_id"]).other(user_id) for m in matches]
            summaries = self.users.get_summaries(others)
            items = [
                MatchResponse(**match, other_user=summaries.get(other))
                for match, other in zip(matches, others)
            ]
            return MatchListResponse(matches=items, total=result.count or 0, page=page, limit=limit)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error getting matches for {user_id}: {str(e)}")
            raise UpstreamError(f"Failed to get matches: {str(e)}")
