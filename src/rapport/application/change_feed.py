"""Fold server-pushed deltas into the live Account and the local cache.

Feed callbacks may arrive on any thread. They are handed to the event loop
that called start(), so the Account is only ever mutated on that loop.
"""

import asyncio
import logging
from collections.abc import Callable

from rapport.application.context import SessionContext
from rapport.application.dto import (
    ChatAdded,
    ChatRemoved,
    FeedEvent,
    ProfileChanged,
    ProfileRemoved,
    RequestAdded,
    RequestRemoved,
    SentRequestsChanged,
)
from rapport.application.observers import ObserverRegistry, ObserverToken
from rapport.application.ports import (
    LocalCache,
    ProfileDirectory,
    RelationshipDirectory,
    Subscription,
)
from rapport.domain import Account, ChangeDelta, Chat, FeedScope, Profile, Request

logger = logging.getLogger(__name__)


class ChangeFeedSubscriber:
    def __init__(
        self,
        context: SessionContext,
        account: Account,
        *,
        profiles: ProfileDirectory,
        relationships: RelationshipDirectory,
        cache: LocalCache,
    ) -> None:
        self._context = context
        self._account = account
        self._profiles = profiles
        self._relationships = relationships
        self._cache = cache
        self._observers: ObserverRegistry[FeedEvent] = ObserverRegistry()
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        # Cache writes from feed tasks run one at a time, in delivery order.
        self._cache_lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    def add_observer(self, callback: Callable[[FeedEvent], None]) -> ObserverToken:
        return self._observers.add(callback)

    def remove_observer(self, token: ObserverToken) -> bool:
        return self._observers.remove(token)

    def start(self) -> None:
        """Open the friends, requests, sent-requests and profile subscriptions.

        Must be called from a running event loop. Calling it again while
        subscribed does nothing.
        """
        if self._subscriptions:
            return
        self._loop = asyncio.get_running_loop()
        account_id = self._context.account_id
        self._subscriptions = [
            self._relationships.init_friends_feed(account_id, self._deliver(self._on_friends)),
            self._relationships.init_requests_feed(account_id, self._deliver(self._on_requests)),
            self._relationships.init_sent_requests_feed(
                account_id, self._deliver(self._on_sent_requests)
            ),
            self._profiles.init_profile_feed(account_id, self._deliver(self._on_profile)),
        ]
        logger.info("Change feeds open for %s", account_id)

    def close(self) -> None:
        """Cancel every subscription and any profile lookup still in flight."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        logger.info("Change feeds closed for %s", self._context.account_id)

    async def wait_idle(self) -> None:
        """Wait until every delivered delta and its profile lookups are processed."""
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    def _deliver(self, handler: Callable) -> Callable:
        def callback(value) -> None:
            loop = self._loop
            if loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(self._dispatch, handler, value)

        return callback

    def _dispatch(self, handler: Callable, value) -> None:
        if not self._subscriptions:
            # Arrived after close().
            return
        handler(value)

    def _on_friends(self, delta: ChangeDelta) -> None:
        self._account.apply(delta)
        self._spawn(self._sync_friends(delta))

    def _on_requests(self, delta: ChangeDelta) -> None:
        self._account.apply(delta)
        self._spawn(self._sync_requests(delta))

    def _on_sent_requests(self, delta: ChangeDelta) -> None:
        self._account.apply(delta)
        self._spawn(self._sync_sent_requests(delta))

    def _on_profile(self, profile: Profile) -> None:
        if profile.id != self._account.id:
            return
        self._account.profile = profile
        self._spawn(self._sync_profile(profile))

    async def _sync_friends(self, delta: ChangeDelta) -> None:
        async with self._cache_lock:
            await self._cache.save(self._account)
            cached = {chat.friend_id: chat for chat in await self._cache.list_chats()}
            for friend_id in delta.removed:
                chat = cached.get(friend_id)
                if chat is None:
                    continue
                await self._cache.remove_chat(friend_id)
                self._observers.notify(ChatRemoved(chat))
        for friend_id in delta.added - delta.removed:
            if self._account.is_friend(friend_id):
                self._spawn(self._add_chat(friend_id))

    async def _sync_requests(self, delta: ChangeDelta) -> None:
        async with self._cache_lock:
            await self._cache.save(self._account)
            cached = {request.sender_id: request for request in await self._cache.list_requests()}
            for sender_id in delta.removed:
                request = cached.get(sender_id)
                if request is None:
                    continue
                await self._cache.remove_request(sender_id)
                self._observers.notify(RequestRemoved(request))
        for sender_id in delta.added - delta.removed:
            if self._account.is_waiting(sender_id):
                self._spawn(self._add_request(sender_id))

    async def _sync_sent_requests(self, delta: ChangeDelta) -> None:
        async with self._cache_lock:
            await self._cache.save(self._account)
        self._observers.notify(SentRequestsChanged(added=delta.added, removed=delta.removed))

    async def _sync_profile(self, profile: Profile) -> None:
        async with self._cache_lock:
            await self._cache.save(self._account)
        if profile.removed:
            logger.info("Account %s was removed", profile.id)
            self._observers.notify(ProfileRemoved(profile))
        else:
            self._observers.notify(ProfileChanged(profile))

    async def _add_chat(self, friend_id: str) -> None:
        profile = await self._lookup(friend_id)
        if profile is None:
            return
        async with self._cache_lock:
            if not self._account.is_friend(friend_id):
                return
            if any(chat.friend_id == friend_id for chat in await self._cache.list_chats()):
                return
            chat = Chat.for_profile(profile)
            await self._cache.upsert_chat(chat)
        self._observers.notify(ChatAdded(chat))

    async def _add_request(self, sender_id: str) -> None:
        profile = await self._lookup(sender_id)
        if profile is None:
            return
        async with self._cache_lock:
            if not self._account.is_waiting(sender_id):
                return
            if any(r.sender_id == sender_id for r in await self._cache.list_requests()):
                return
            request = Request.for_profile(profile)
            await self._cache.upsert_request(request)
        self._observers.notify(RequestAdded(request))

    async def _lookup(self, user_id: str) -> Profile | None:
        try:
            return await self._profiles.get_profile(user_id)
        except Exception as exc:
            logger.warning("Profile lookup for %s failed: %r", user_id, exc)
            return None

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
