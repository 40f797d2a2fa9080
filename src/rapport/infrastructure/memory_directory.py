"""In-memory social backend implementing every directory port (no network).

Holds profiles, credentials, and the relationship graph for all users and
pushes deltas to live subscriptions the way the real backend does. Failures
can be injected per operation (and optionally per target user) with fail().
"""

import asyncio
import dataclasses
import uuid
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from rapport.application.errors import RequestRejected, UserNotFound
from rapport.domain import ChangeDelta, FeedScope, Profile

_PROFILE_FEED = "profile"


class InMemorySubscription:
    def __init__(self, listeners: list, callback: Callable) -> None:
        self._listeners = listeners
        self._callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._listeners.remove(self._callback)


class InMemoryDirectory:
    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self._credentials: dict[str, tuple[str, str]] = {}  # email -> (password, account_id)
        self._blocked: dict[str, set[str]] = defaultdict(set)
        self._friends: dict[str, set[str]] = defaultdict(set)
        self._incoming: dict[str, set[str]] = defaultdict(set)
        self._outgoing: dict[str, set[str]] = defaultdict(set)
        self._listeners: dict[tuple[object, str], list[Callable]] = defaultdict(list)
        self._failures: dict[tuple[str, str | None], Exception] = {}
        self._cursors: dict[str, int] = {}  # account_id -> offset of the next page
        self.calls: list[tuple[str, tuple]] = []

    # --- seeding and failure injection ---

    def add_user(self, profile: Profile) -> Profile:
        self._profiles[profile.id] = profile
        return profile

    def make_friends(self, account_id: str, user_id: str) -> None:
        self._friends[account_id].add(user_id)
        self._friends[user_id].add(account_id)

    def put_request(self, sender_id: str, recipient_id: str) -> None:
        self._outgoing[sender_id].add(recipient_id)
        self._incoming[recipient_id].add(sender_id)

    def put_block(self, account_id: str, user_id: str) -> None:
        self._blocked[account_id].add(user_id)

    def fail(self, operation: str, error: Exception, user_id: str | None = None) -> None:
        """Make operation raise error (only for user_id, when given) until heal()."""
        self._failures[(operation, user_id)] = error

    def heal(self, operation: str | None = None) -> None:
        if operation is None:
            self._failures.clear()
            return
        for key in [k for k in self._failures if k[0] == operation]:
            del self._failures[key]

    def subscriber_count(self, account_id: str) -> int:
        return sum(
            len(listeners)
            for (_, owner), listeners in self._listeners.items()
            if owner == account_id
        )

    # --- ProfileDirectory ---

    async def get_profile(self, user_id: str) -> Profile:
        await self._enter("get_profile", user_id)
        return self._require(user_id)

    async def get_first_profile_ids(self, account_id: str, count: int) -> list[str]:
        await self._enter("get_first_profile_ids", account_id)
        self._cursors[account_id] = 0
        return self._page(account_id, count)

    async def get_next_profile_ids(self, account_id: str, count: int) -> list[str]:
        await self._enter("get_next_profile_ids", account_id)
        return self._page(account_id, count)

    def init_profile_feed(self, user_id: str, on_change: Callable[[Profile], None]):
        return self._subscribe(_PROFILE_FEED, user_id, on_change)

    # --- AccountDirectory ---

    async def get_blocked_ids(self, account_id: str) -> list[str]:
        await self._enter("get_blocked_ids", account_id)
        return sorted(self._blocked[account_id])

    async def block_user(self, account_id: str, user_id: str) -> None:
        await self._enter("block_user", account_id, user_id)
        self._require(user_id)
        if user_id == account_id:
            raise RequestRejected("cannot block yourself")
        self._blocked[account_id].add(user_id)

    async def unblock_user(self, account_id: str, user_id: str) -> None:
        await self._enter("unblock_user", account_id, user_id)
        if user_id not in self._blocked[account_id]:
            raise RequestRejected(f"{user_id} is not blocked")
        self._blocked[account_id].discard(user_id)

    async def set_online(self, account_id: str) -> None:
        await self._enter("set_online", account_id)
        self._update_profile(account_id, online=True, last_activity=_now())

    async def set_offline(self, account_id: str) -> None:
        await self._enter("set_offline", account_id)
        self._update_profile(account_id, online=False, last_activity=_now())

    async def create_account(self, account_id: str, profile: Profile) -> None:
        await self._enter("create_account", account_id)
        if account_id in self._profiles:
            raise RequestRejected(f"{account_id} already has a profile")
        self._profiles[account_id] = profile

    async def edit_account(self, account_id: str, profile: Profile) -> None:
        await self._enter("edit_account", account_id)
        current = self._require(account_id)
        self._update_profile(
            account_id,
            user_name=profile.user_name,
            info=profile.info,
            sex=profile.sex,
            country=profile.country,
            city=profile.city,
            birthday=profile.birthday,
            image_url=profile.image_url,
            posts_count=current.posts_count,
        )

    async def remove_account(self, account_id: str) -> None:
        await self._enter("remove_account", account_id)
        self._update_profile(account_id, removed=True, online=False)

    async def recover_account(self, account_id: str) -> None:
        await self._enter("recover_account", account_id)
        if not self._require(account_id).removed:
            raise RequestRejected(f"{account_id} is not removed")
        self._update_profile(account_id, removed=False)

    # --- RelationshipDirectory ---

    async def friend_ids(self, account_id: str) -> list[str]:
        await self._enter("friend_ids", account_id)
        return sorted(self._friends[account_id])

    async def waiting_ids(self, account_id: str) -> list[str]:
        await self._enter("waiting_ids", account_id)
        return sorted(self._incoming[account_id])

    async def request_ids(self, account_id: str) -> list[str]:
        await self._enter("request_ids", account_id)
        return sorted(self._outgoing[account_id])

    async def send_request(self, account_id: str, user_id: str) -> None:
        await self._enter("send_request", account_id, user_id)
        self._require(user_id)
        if (
            user_id == account_id
            or user_id in self._blocked[account_id]
            or account_id in self._blocked[user_id]
            or user_id in self._friends[account_id]
        ):
            raise RequestRejected(f"cannot send a request to {user_id}")
        if user_id in self._outgoing[account_id]:
            return
        self.put_request(account_id, user_id)
        self._push(FeedScope.REQUESTS, user_id, added=[account_id])
        self._push(FeedScope.SENT_REQUESTS, account_id, added=[user_id])

    async def accept_request(self, account_id: str, user_id: str) -> None:
        await self._enter("accept_request", account_id, user_id)
        if user_id not in self._incoming[account_id]:
            raise RequestRejected(f"no request from {user_id}")
        self._incoming[account_id].discard(user_id)
        self._outgoing[user_id].discard(account_id)
        self.make_friends(account_id, user_id)
        self._push(FeedScope.REQUESTS, account_id, removed=[user_id])
        self._push(FeedScope.SENT_REQUESTS, user_id, removed=[account_id])
        self._push(FeedScope.FRIENDS, account_id, added=[user_id])
        self._push(FeedScope.FRIENDS, user_id, added=[account_id])

    async def deny_request(self, account_id: str, user_id: str) -> None:
        await self._enter("deny_request", account_id, user_id)
        if user_id not in self._incoming[account_id]:
            return
        self._incoming[account_id].discard(user_id)
        self._outgoing[user_id].discard(account_id)
        self._push(FeedScope.REQUESTS, account_id, removed=[user_id])
        self._push(FeedScope.SENT_REQUESTS, user_id, removed=[account_id])

    async def cancel_request(self, account_id: str, user_id: str) -> None:
        await self._enter("cancel_request", account_id, user_id)
        if user_id not in self._outgoing[account_id]:
            return
        self._outgoing[account_id].discard(user_id)
        self._incoming[user_id].discard(account_id)
        self._push(FeedScope.SENT_REQUESTS, account_id, removed=[user_id])
        self._push(FeedScope.REQUESTS, user_id, removed=[account_id])

    async def remove_friend(self, account_id: str, user_id: str) -> None:
        await self._enter("remove_friend", account_id, user_id)
        if user_id not in self._friends[account_id]:
            return
        self._friends[account_id].discard(user_id)
        self._friends[user_id].discard(account_id)
        self._push(FeedScope.FRIENDS, account_id, removed=[user_id])
        self._push(FeedScope.FRIENDS, user_id, removed=[account_id])

    def init_friends_feed(self, account_id: str, on_delta: Callable[[ChangeDelta], None]):
        return self._subscribe(FeedScope.FRIENDS, account_id, on_delta)

    def init_requests_feed(self, account_id: str, on_delta: Callable[[ChangeDelta], None]):
        return self._subscribe(FeedScope.REQUESTS, account_id, on_delta)

    def init_sent_requests_feed(self, account_id: str, on_delta: Callable[[ChangeDelta], None]):
        return self._subscribe(FeedScope.SENT_REQUESTS, account_id, on_delta)

    def push_delta(
        self,
        scope: FeedScope,
        account_id: str,
        *,
        added: Iterable[str] = (),
        removed: Iterable[str] = (),
    ) -> None:
        """Deliver a delta as is, without touching the stored graph."""
        self._push(scope, account_id, added=added, removed=removed)

    # --- AuthDirectory ---

    async def register(self, email: str, password: str) -> str:
        await self._enter("register", email)
        if email in self._credentials:
            raise RequestRejected(f"{email} is already registered")
        account_id = str(uuid.uuid4())
        self._credentials[email] = (password, account_id)
        return account_id

    async def login(self, email: str, password: str) -> str:
        await self._enter("login", email)
        stored = self._credentials.get(email)
        if stored is None or stored[0] != password:
            raise RequestRejected("wrong email or password")
        return stored[1]

    async def sign_out(self, account_id: str) -> None:
        await self._enter("sign_out", account_id)

    # --- internals ---

    async def _enter(self, operation: str, *args: str) -> None:
        self.calls.append((operation, args))
        await asyncio.sleep(0)
        target = args[-1] if args else None
        error = self._failures.get((operation, target)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    def _page(self, account_id: str, count: int) -> list[str]:
        start = self._cursors.get(account_id, 0)
        ids = sorted(self._profiles)[start : start + count]
        self._cursors[account_id] = start + len(ids)
        return ids

    def _require(self, user_id: str) -> Profile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise UserNotFound(user_id)
        return profile

    def _update_profile(self, user_id: str, **changes) -> None:
        profile = dataclasses.replace(self._require(user_id), **changes)
        self._profiles[user_id] = profile
        for callback in list(self._listeners[(_PROFILE_FEED, user_id)]):
            callback(profile)

    def _subscribe(self, kind: object, owner: str, callback: Callable) -> InMemorySubscription:
        listeners = self._listeners[(kind, owner)]
        listeners.append(callback)
        return InMemorySubscription(listeners, callback)

    def _push(
        self,
        scope: FeedScope,
        account_id: str,
        *,
        added: Iterable[str] = (),
        removed: Iterable[str] = (),
    ) -> None:
        delta = ChangeDelta(scope=scope, added=frozenset(added), removed=frozenset(removed))
        for callback in list(self._listeners[(scope, account_id)]):
            callback(delta)


def _now() -> datetime:
    return datetime.now(timezone.utc)
