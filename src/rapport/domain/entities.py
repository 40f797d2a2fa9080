"""Domain entities: Profile, Account, Chat, Request, and ChangeDelta."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Profile:
    """
    Identity and display attributes of one user.
    A Profile is replaced wholesale on every refresh, never merged field by field.
    """

    id: str
    user_name: str = ""
    info: str = ""
    sex: str = ""
    country: str = ""
    city: str = ""
    birthday: str = ""
    image_url: str = ""
    removed: bool = False
    online: bool = False
    last_activity: datetime | None = None
    posts_count: int = 0

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Profile id must be non-empty.")
        if self.posts_count < 0:
            raise ValueError("Profile posts_count must be >= 0.")


class FeedScope(Enum):
    FRIENDS = "friends"
    REQUESTS = "requests"
    SENT_REQUESTS = "sent_requests"


@dataclass(frozen=True)
class ChangeDelta:
    """Ids added to and removed from one relationship set, as pushed by the server."""

    scope: FeedScope
    added: frozenset[str] = field(default_factory=frozenset)
    removed: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "added", frozenset(self.added))
        object.__setattr__(self, "removed", frozenset(self.removed))


@dataclass(frozen=True)
class Chat:
    """A friend as shown in the chat list. One per entry in Account.friend_ids."""

    friend_id: str
    friend: Profile

    @classmethod
    def for_profile(cls, profile: Profile) -> "Chat":
        return cls(friend_id=profile.id, friend=profile)


@dataclass(frozen=True)
class Request:
    """An incoming request as shown in the requests list. One per entry in Account.waiting_ids."""

    sender_id: str
    sender: Profile

    @classmethod
    def for_profile(cls, profile: Profile) -> "Request":
        return cls(sender_id=profile.id, sender=profile)


@dataclass
class Account:
    """
    Aggregate root for the signed-in user's social state.
    An id in blocked_ids never appears in friend_ids, waiting_ids or request_ids.
    """

    profile: Profile
    blocked_ids: set[str] = field(default_factory=set)
    friend_ids: set[str] = field(default_factory=set)
    waiting_ids: set[str] = field(default_factory=set)
    request_ids: set[str] = field(default_factory=set)

    def __post_init__(self):
        if self.profile is None:
            raise ValueError("Account must have a Profile.")
        self.blocked_ids = set(self.blocked_ids)
        self.friend_ids = set(self.friend_ids) - self.blocked_ids
        self.waiting_ids = set(self.waiting_ids) - self.blocked_ids
        self.request_ids = set(self.request_ids) - self.blocked_ids

    @property
    def id(self) -> str:
        return self.profile.id

    def is_blocked(self, user_id: str) -> bool:
        return user_id in self.blocked_ids

    def is_friend(self, user_id: str) -> bool:
        return user_id in self.friend_ids

    def is_waiting(self, user_id: str) -> bool:
        return user_id in self.waiting_ids

    def is_requested(self, user_id: str) -> bool:
        return user_id in self.request_ids

    def block(self, user_id: str) -> None:
        self.blocked_ids.add(user_id)
        self._evict(user_id)

    def unblock(self, user_id: str) -> None:
        self.blocked_ids.discard(user_id)

    def reset_blocked(self, user_ids: Iterable[str]) -> None:
        """Replace blocked_ids with the given ids, evicting them from the other sets."""
        self.blocked_ids = set(user_ids)
        for user_id in self.blocked_ids:
            self._evict(user_id)

    def add_request(self, user_id: str) -> None:
        if user_id not in self.blocked_ids:
            self.request_ids.add(user_id)

    def cancel_request(self, user_id: str) -> None:
        self.request_ids.discard(user_id)

    def accept_request(self, user_id: str) -> None:
        self.waiting_ids.discard(user_id)
        if user_id not in self.blocked_ids:
            self.friend_ids.add(user_id)

    def deny_request(self, user_id: str) -> None:
        self.waiting_ids.discard(user_id)

    def remove_friend(self, user_id: str) -> None:
        self.friend_ids.discard(user_id)

    def apply(self, delta: ChangeDelta) -> None:
        """Fold a server delta into the matching set. Added first, then removed."""
        target = self._target(delta.scope)
        target.update(delta.added - self.blocked_ids)
        target.difference_update(delta.removed)

    def overwrite(self, other: "Account") -> None:
        """Replace every field with other's (last writer wins)."""
        self.profile = other.profile
        self.blocked_ids = set(other.blocked_ids)
        self.friend_ids = set(other.friend_ids)
        self.waiting_ids = set(other.waiting_ids)
        self.request_ids = set(other.request_ids)

    def copy(self) -> "Account":
        return Account(
            profile=self.profile,
            blocked_ids=set(self.blocked_ids),
            friend_ids=set(self.friend_ids),
            waiting_ids=set(self.waiting_ids),
            request_ids=set(self.request_ids),
        )

    def _evict(self, user_id: str) -> None:
        self.friend_ids.discard(user_id)
        self.waiting_ids.discard(user_id)
        self.request_ids.discard(user_id)

    def _target(self, scope: FeedScope) -> set[str]:
        if scope is FeedScope.FRIENDS:
            return self.friend_ids
        if scope is FeedScope.REQUESTS:
            return self.waiting_ids
        return self.request_ids
