"""One signed-in account: launch, refresh, profile edits, and sign-out."""

import asyncio
import dataclasses
import logging

from rapport.application.account_aggregator import AccountAggregator
from rapport.application.change_feed import ChangeFeedSubscriber
from rapport.application.context import SessionContext
from rapport.application.errors import (
    CantEditAccount,
    CantRecoverAccount,
    CantRemoveAccount,
    RemovedAccount,
    TransportFailure,
)
from rapport.application.ports import (
    AccountDirectory,
    AuthDirectory,
    LocalCache,
    ProfileDirectory,
    RelationshipDirectory,
)
from rapport.application.profile_browser import ProfileBrowser
from rapport.application.relationship_gateway import RelationshipGateway, call_remote
from rapport.domain import Account, Profile

logger = logging.getLogger(__name__)

EDITABLE_PROFILE_FIELDS = frozenset(
    {"user_name", "info", "sex", "country", "city", "birthday", "image_url"}
)


class AccountSession:
    """Owns the live Account for one signed-in user and the components acting on it.

    The gateway and the change feed share the same Account object, so a
    refresh overwrites it in place rather than replacing it.
    """

    def __init__(
        self,
        context: SessionContext,
        *,
        profiles: ProfileDirectory,
        accounts: AccountDirectory,
        relationships: RelationshipDirectory,
        cache: LocalCache,
        auth: AuthDirectory | None = None,
    ) -> None:
        self._context = context
        self._profiles = profiles
        self._accounts = accounts
        self._relationships = relationships
        self._cache = cache
        self._auth = auth
        self._aggregator = AccountAggregator(profiles, accounts, relationships)
        self._account: Account | None = None
        self._gateway: RelationshipGateway | None = None
        self._feed: ChangeFeedSubscriber | None = None
        self._background: set[asyncio.Task] = set()
        self._browser = ProfileBrowser(context, profiles)

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def browser(self) -> ProfileBrowser:
        return self._browser

    @property
    def launched(self) -> bool:
        return self._account is not None

    @property
    def account(self) -> Account:
        if self._account is None:
            raise RuntimeError("Session not launched; call launch() first.")
        return self._account

    @property
    def gateway(self) -> RelationshipGateway:
        if self._gateway is None:
            raise RuntimeError("Session not launched; call launch() first.")
        return self._gateway

    @property
    def feed(self) -> ChangeFeedSubscriber:
        if self._feed is None:
            raise RuntimeError("Session not launched; call launch() first.")
        return self._feed

    async def launch(self, account: Account | None = None) -> Account:
        """Start the session.

        With an account (right after login or registration) it is adopted as is.
        Without one, the cached account is used at once and refreshed in the
        background; if nothing is cached the refresh is awaited.
        """
        if account is not None:
            return await self._adopt(account)
        cached = await self._cache.load(self._context.account_id)
        if cached is None:
            return await self.refresh()
        self._bind(cached)
        self._spawn(self._refresh_in_background())
        return self.account

    async def refresh(self) -> Account:
        """Rebuild the account from the server and overwrite local state."""
        account = await self._aggregator.build_account(self._context.account_id)
        return await self._adopt(account)

    async def edit_profile(self, **fields) -> Profile:
        """Replace profile display fields (user_name, info, sex, country, city, birthday, image_url)."""
        unknown = set(fields) - EDITABLE_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Profile fields cannot be edited: {sorted(unknown)}")
        edited = dataclasses.replace(self.account.profile, **fields)
        await call_remote(
            self._accounts.edit_account(self._context.account_id, edited), CantEditAccount
        )
        self.account.profile = edited
        await self._cache.save(self.account)
        return edited

    async def recover_account(self) -> None:
        await call_remote(
            self._accounts.recover_account(self._context.account_id), CantRecoverAccount
        )
        self.account.profile = dataclasses.replace(self.account.profile, removed=False)
        await self._cache.save(self.account)
        await self.set_online()

    async def remove_account(self) -> None:
        await call_remote(
            self._accounts.remove_account(self._context.account_id), CantRemoveAccount
        )
        await self.sign_out()

    async def set_online(self) -> None:
        await self._presence(self._accounts.set_online(self._context.account_id))

    async def set_offline(self) -> None:
        await self._presence(self._accounts.set_offline(self._context.account_id))

    async def sign_out(self) -> None:
        """End the session: close feeds, sign out remotely, go offline, clear the cache.

        Local state is cleared even when a remote step fails; the failure is
        raised afterwards.
        """
        if self._feed is not None:
            self._feed.close()
        for task in self._background:
            task.cancel()
        self._background.clear()
        try:
            if self._auth is not None:
                try:
                    await self._auth.sign_out(self._context.account_id)
                except Exception as exc:
                    raise TransportFailure(exc) from exc
        finally:
            try:
                await self.set_offline()
            finally:
                self._account = None
                self._gateway = None
                self._feed = None
                await self._cache.clear()
                logger.info("Signed out %s", self._context.account_id)

    async def wait_idle(self) -> None:
        """Wait for the background refresh and any pending feed work."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._feed is not None:
            await self._feed.wait_idle()

    async def _adopt(self, account: Account) -> Account:
        self._bind(account)
        await self._cache.save(self.account)
        if self.account.profile.removed:
            raise RemovedAccount()
        await self.set_online()
        return self.account

    def _bind(self, account: Account) -> None:
        if self._account is not None:
            self._account.overwrite(account)
            return
        self._account = account
        self._gateway = RelationshipGateway(
            self._context,
            account,
            profiles=self._profiles,
            accounts=self._accounts,
            relationships=self._relationships,
            cache=self._cache,
        )
        self._feed = ChangeFeedSubscriber(
            self._context,
            account,
            profiles=self._profiles,
            relationships=self._relationships,
            cache=self._cache,
        )

    async def _refresh_in_background(self) -> None:
        try:
            await self.refresh()
        except RemovedAccount:
            logger.info("Account %s is removed", self._context.account_id)
        except Exception as exc:
            logger.warning(
                "Background refresh for %s failed: %r", self._context.account_id, exc
            )

    async def _presence(self, call) -> None:
        try:
            await call
        except Exception as exc:
            raise TransportFailure(exc) from exc

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
