"""Browse other users' profiles page by page."""

import logging
from collections.abc import Iterable

from rapport.application.context import SessionContext
from rapport.application.errors import EmptyProfile, TransportFailure, UserNotFound
from rapport.application.join import gather_settled
from rapport.application.ports import ProfileDirectory
from rapport.domain import Profile

logger = logging.getLogger(__name__)

PAGE_SIZE = 15


async def resolve_profiles(
    directory: ProfileDirectory, user_ids: Iterable[str]
) -> dict[str, Profile]:
    """Look up every id concurrently. Ids whose lookup fails are logged and left out.

    Duplicate ids are looked up once; the result keeps first-seen order.
    """
    unique_ids = list(dict.fromkeys(user_ids))
    profiles, failures = await gather_settled(
        {user_id: directory.get_profile(user_id) for user_id in unique_ids}
    )
    for user_id, exc in failures.items():
        logger.warning("Dropping %s: profile lookup failed: %r", user_id, exc)
    return profiles


class ProfileBrowser:
    """Pages through users known to the server, leaving out the signed-in account.

    The server keeps the paging position per account; first_page() restarts it.
    """

    def __init__(
        self,
        context: SessionContext,
        profiles: ProfileDirectory,
        page_size: int = PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1.")
        self._context = context
        self._profiles = profiles
        self._page_size = page_size

    async def get_profile(self, user_id: str) -> Profile:
        try:
            return await self._profiles.get_profile(user_id)
        except UserNotFound as exc:
            raise EmptyProfile() from exc
        except Exception as exc:
            raise TransportFailure(exc) from exc

    async def first_page(self) -> list[Profile]:
        return await self._page(
            self._profiles.get_first_profile_ids(self._context.account_id, self._page_size)
        )

    async def next_page(self) -> list[Profile]:
        """An empty list means there is nothing more to show."""
        return await self._page(
            self._profiles.get_next_profile_ids(self._context.account_id, self._page_size)
        )

    async def _page(self, fetch_ids) -> list[Profile]:
        try:
            user_ids = await fetch_ids
        except Exception as exc:
            raise TransportFailure(exc) from exc
        user_ids = [
            user_id
            for user_id in dict.fromkeys(user_ids)
            if user_id != self._context.account_id
        ]
        profiles = await resolve_profiles(self._profiles, user_ids)
        return [profiles[user_id] for user_id in user_ids if user_id in profiles]
