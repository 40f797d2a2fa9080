"""Application ports (interfaces). Implemented by infrastructure adapters.

Remote directories and the local cache are async. Feed callbacks may be invoked from any thread.
Adapters raise UserNotFound / RequestRejected for remote outcomes; anything
else is treated as a transport failure.
"""

from collections.abc import Callable
from typing import Protocol

from rapport.domain import Account, ChangeDelta, Chat, Profile, Request


class Subscription(Protocol):
    """A live server-push subscription."""

    def cancel(self) -> None:
        """Stop delivery and release the connection. Safe to call twice."""
        ...


class ProfileDirectory(Protocol):
    async def get_profile(self, user_id: str) -> Profile:
        """Return the profile or raise UserNotFound."""
        ...

    async def get_first_profile_ids(self, account_id: str, count: int) -> list[str]:
        """Start browsing: the first count user ids, in server order."""
        ...

    async def get_next_profile_ids(self, account_id: str, count: int) -> list[str]:
        """The next count user ids after the previous page for this account."""
        ...

    def init_profile_feed(
        self, user_id: str, on_change: Callable[[Profile], None]
    ) -> Subscription:
        """Push every change of the user's profile to on_change."""
        ...


class AccountDirectory(Protocol):
    async def get_blocked_ids(self, account_id: str) -> list[str]: ...

    async def block_user(self, account_id: str, user_id: str) -> None: ...

    async def unblock_user(self, account_id: str, user_id: str) -> None: ...

    async def set_online(self, account_id: str) -> None: ...

    async def set_offline(self, account_id: str) -> None: ...

    async def create_account(self, account_id: str, profile: Profile) -> None: ...

    async def edit_account(self, account_id: str, profile: Profile) -> None: ...

    async def remove_account(self, account_id: str) -> None:
        """Soft-delete: the profile is marked removed."""
        ...

    async def recover_account(self, account_id: str) -> None: ...


class RelationshipDirectory(Protocol):
    async def friend_ids(self, account_id: str) -> list[str]: ...

    async def waiting_ids(self, account_id: str) -> list[str]:
        """Senders of incoming requests awaiting the account's decision."""
        ...

    async def request_ids(self, account_id: str) -> list[str]:
        """Recipients of outgoing requests the account sent."""
        ...

    async def send_request(self, account_id: str, user_id: str) -> None: ...

    async def accept_request(self, account_id: str, user_id: str) -> None: ...

    async def deny_request(self, account_id: str, user_id: str) -> None: ...

    async def cancel_request(self, account_id: str, user_id: str) -> None: ...

    async def remove_friend(self, account_id: str, user_id: str) -> None: ...

    def init_friends_feed(
        self, account_id: str, on_delta: Callable[[ChangeDelta], None]
    ) -> Subscription: ...

    def init_requests_feed(
        self, account_id: str, on_delta: Callable[[ChangeDelta], None]
    ) -> Subscription: ...

    def init_sent_requests_feed(
        self, account_id: str, on_delta: Callable[[ChangeDelta], None]
    ) -> Subscription: ...


class AuthDirectory(Protocol):
    async def register(self, email: str, password: str) -> str:
        """Create credentials and return the new account id."""
        ...

    async def login(self, email: str, password: str) -> str:
        """Return the account id, or raise RequestRejected on bad credentials."""
        ...

    async def sign_out(self, account_id: str) -> None: ...


class LocalCache(Protocol):
    """On-device copy of one account's state. Not a source of truth."""

    async def load(self, account_id: str) -> Account | None:
        """Return the last saved account with this id, or None."""
        ...

    async def save(self, account: Account) -> None:
        """Create or fully replace the record keyed by account.id."""
        ...

    async def list_chats(self) -> list[Chat]: ...

    async def upsert_chat(self, chat: Chat) -> None:
        """Create or fully replace the chat keyed by chat.friend_id."""
        ...

    async def remove_chat(self, friend_id: str) -> None: ...

    async def list_requests(self) -> list[Request]: ...

    async def upsert_request(self, request: Request) -> None:
        """Create or fully replace the request keyed by request.sender_id."""
        ...

    async def remove_request(self, sender_id: str) -> None: ...

    async def clear(self) -> None:
        """Delete the account and every chat and request stored for it."""
        ...
