from typing import NamedTuple

from app.core.exceptions import ValidationError


class UserPair(NamedTuple):
    """Unordered pair of users stored with user1_id < user2_id. Keys matches and chat rooms."""
    user1_id: str
    user2_id: str

    def other(self, user_id: str) -> str:
        return self.user2_id if user_id == self.user1_id else self.user1_id

    def includes(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def as_row(self) -> dict:
        return {"user1_id": self.user1_id, "user2_id": self.user2_id}


def canonical_pair(a: str, b: str) -> UserPair:
    if a == b:
        raise ValidationError("A pair needs two different users")
    return UserPair(a, b) if a < b else UserPair(b, a)
