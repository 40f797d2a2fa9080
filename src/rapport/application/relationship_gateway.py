"""Social-graph mutations for the signed-in account.

Each mutation is one remote call. Local state (the live Account and the
cache) changes only after the remote side confirms.
"""

import logging
from collections.abc import Awaitable

from rapport.application.context import SessionContext
from rapport.application.errors import (
    CantAcceptRequest,
    CantBlock,
    CantCancelRequest,
    CantDenyRequest,
    CantRemoveFriend,
    CantSendRequest,
    CantUnblock,
    OperationRejected,
    RequestRejected,
    TransportFailure,
    UserNotFound,
)
from rapport.application.join import gather_settled
from rapport.application.ports import (
    AccountDirectory,
    LocalCache,
    ProfileDirectory,
    RelationshipDirectory,
)
from rapport.application.profile_browser import resolve_profiles
from rapport.domain import Account, Chat, Profile, Request

logger = logging.getLogger(__name__)


async def call_remote(call: Awaitable[None], rejected: type[OperationRejected]) -> None:
    """Await a remote call, translating its failure into the AccountError taxonomy."""
    try:
        await call
    except (RequestRejected, UserNotFound) as exc:
        raise rejected() from exc
    except Exception as exc:
        raise TransportFailure(exc) from exc


class RelationshipGateway:
    """Cached chats and requests follow friend_ids and waiting_ids after every mutation."""

    def __init__(
        self,
        context: SessionContext,
        account: Account,
        *,
        profiles: ProfileDirectory,
        accounts: AccountDirectory,
        relationships: RelationshipDirectory,
        cache: LocalCache,
    ) -> None:
        self._context = context
        self._account = account
        self._profiles = profiles
        self._accounts = accounts
        self._relationships = relationships
        self._cache = cache

    @property
    def _account_id(self) -> str:
        return self._context.account_id

    def is_friend(self, user_id: str) -> bool:
        return self._account.is_friend(user_id)

    def is_waiting(self, user_id: str) -> bool:
        return self._account.is_waiting(user_id)

    def is_requested(self, user_id: str) -> bool:
        return self._account.is_requested(user_id)

    def is_blocked(self, user_id: str) -> bool:
        return self._account.is_blocked(user_id)

    async def send_request(self, user_id: str) -> None:
        await call_remote(
            self._relationships.send_request(self._account_id, user_id),
            CantSendRequest,
        )
        self._account.add_request(user_id)
        await self._cache.save(self._account)

    async def accept_request(self, user_id: str) -> None:
        """Move user_id from requests to friends. The chat is added only if the
        friend's profile can be fetched; a later refresh fills it in otherwise."""
        await call_remote(
            self._relationships.accept_request(self._account_id, user_id),
            CantAcceptRequest,
        )
        self._account.accept_request(user_id)
        await self._cache.save(self._account)
        await self._cache.remove_request(user_id)
        if not self._account.is_friend(user_id):
            return
        profiles = await resolve_profiles(self._profiles, [user_id])
        if user_id in profiles and self._account.is_friend(user_id):
            await self._cache.upsert_chat(Chat.for_profile(profiles[user_id]))

    async def deny_request(self, user_id: str) -> None:
        await call_remote(
            self._relationships.deny_request(self._account_id, user_id),
            CantDenyRequest,
        )
        self._account.deny_request(user_id)
        await self._cache.save(self._account)
        await self._cache.remove_request(user_id)

    async def cancel_request(self, user_id: str) -> None:
        # Outgoing requests have no cached display record.
        await call_remote(
            self._relationships.cancel_request(self._account_id, user_id),
            CantCancelRequest,
        )
        self._account.cancel_request(user_id)
        await self._cache.save(self._account)

    async def remove_friend(self, user_id: str) -> None:
        await call_remote(
            self._relationships.remove_friend(self._account_id, user_id),
            CantRemoveFriend,
        )
        self._account.remove_friend(user_id)
        await self._cache.save(self._account)
        await self._cache.remove_chat(user_id)

    async def block(self, user_id: str) -> None:
        """Block user_id, then drop friendship and pending requests in both directions.

        Raises CantBlock if the block or any cleanup call fails; local state is
        then left as it was.
        """
        await call_remote(self._accounts.block_user(self._account_id, user_id), CantBlock)
        _, failures = await gather_settled(
            {
                "remove_friend": self._relationships.remove_friend(self._account_id, user_id),
                "deny_request": self._relationships.deny_request(self._account_id, user_id),
                "cancel_request": self._relationships.cancel_request(self._account_id, user_id),
            }
        )
        if failures:
            logger.warning(
                "Blocked %s but cleanup failed: %s",
                user_id,
                ", ".join(f"{step}: {exc!r}" for step, exc in failures.items()),
            )
            raise CantBlock() from next(iter(failures.values()))
        self._account.block(user_id)
        await self._cache.save(self._account)
        await self._cache.remove_chat(user_id)
        await self._cache.remove_request(user_id)

    async def unblock(self, user_id: str) -> None:
        await call_remote(self._accounts.unblock_user(self._account_id, user_id), CantUnblock)
        self._account.unblock(user_id)
        await self._cache.save(self._account)

    async def list_blocked(self) -> list[Profile]:
        """Refresh blocked ids from the server and resolve their profiles.

        Ids whose profile cannot be fetched are left out of the result.
        """
        try:
            blocked_ids = await self._accounts.get_blocked_ids(self._account_id)
        except Exception as exc:
            raise TransportFailure(exc) from exc
        blocked_ids = list(dict.fromkeys(blocked_ids))
        self._account.reset_blocked(blocked_ids)
        await self._cache.save(self._account)
        for user_id in blocked_ids:
            await self._cache.remove_chat(user_id)
            await self._cache.remove_request(user_id)
        profiles = await resolve_profiles(self._profiles, blocked_ids)
        return [profiles[user_id] for user_id in blocked_ids if user_id in profiles]

    async def chats_and_requests(self) -> tuple[list[Chat], list[Request]]:
        """Return what the cache currently holds, without touching the network."""
        return await self._cache.list_chats(), await self._cache.list_requests()

    async def refresh_chats_and_requests(self) -> tuple[list[Chat], list[Request]]:
        """Reload friend and waiting ids and rebuild the cached display records.

        A failed id list leaves the matching records as they were; a failed
        profile lookup only drops that one record from the result.
        """
        lists, failures = await gather_settled(
            {
                "friends": self._relationships.friend_ids(self._account_id),
                "waitings": self._relationships.waiting_ids(self._account_id),
            }
        )
        for name, exc in failures.items():
            logger.warning("Could not refresh %s for %s: %r", name, self._account_id, exc)

        if "friends" in lists:
            self._account.friend_ids = set(lists["friends"]) - self._account.blocked_ids
        if "waitings" in lists:
            self._account.waiting_ids = set(lists["waitings"]) - self._account.blocked_ids
        await self._cache.save(self._account)

        if "friends" in lists:
            chats = await self._rebuild_chats()
        else:
            chats = await self._cache.list_chats()
        if "waitings" in lists:
            requests = await self._rebuild_requests()
        else:
            requests = await self._cache.list_requests()
        return chats, requests

    async def _rebuild_chats(self) -> list[Chat]:
        friend_ids = sorted(self._account.friend_ids)
        for chat in await self._cache.list_chats():
            if chat.friend_id not in self._account.friend_ids:
                await self._cache.remove_chat(chat.friend_id)
        profiles = await resolve_profiles(self._profiles, friend_ids)
        chats = [Chat.for_profile(profiles[fid]) for fid in friend_ids if fid in profiles]
        for chat in chats:
            await self._cache.upsert_chat(chat)
        return chats

    async def _rebuild_requests(self) -> list[Request]:
        sender_ids = sorted(self._account.waiting_ids)
        for request in await self._cache.list_requests():
            if request.sender_id not in self._account.waiting_ids:
                await self._cache.remove_request(request.sender_id)
        profiles = await resolve_profiles(self._profiles, sender_ids)
        requests = [Request.for_profile(profiles[sid]) for sid in sender_ids if sid in profiles]
        for request in requests:
            await self._cache.upsert_request(request)
        return requests
