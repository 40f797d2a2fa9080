"""Build one consistent Account from five independent remote lookups."""

import logging

from rapport.application.errors import EmptyProfile, TransportFailure, UserNotFound
from rapport.application.join import gather_settled
from rapport.application.ports import (
    AccountDirectory,
    ProfileDirectory,
    RelationshipDirectory,
)
from rapport.domain import Account

logger = logging.getLogger(__name__)


class AccountAggregator:
    """All-or-nothing: either every lookup succeeds or no Account is returned.

    Caching the result is the caller's job.
    """

    def __init__(
        self,
        profiles: ProfileDirectory,
        accounts: AccountDirectory,
        relationships: RelationshipDirectory,
    ) -> None:
        self._profiles = profiles
        self._accounts = accounts
        self._relationships = relationships

    async def build_account(self, account_id: str) -> Account:
        """Fetch profile, blocked, friend, waiting and request ids concurrently.

        Raises EmptyProfile when the profile does not exist, TransportFailure
        wrapping the first failure (in lookup order) for anything else.
        """
        results, failures = await gather_settled(
            {
                "profile": self._profiles.get_profile(account_id),
                "blocked": self._accounts.get_blocked_ids(account_id),
                "friends": self._relationships.friend_ids(account_id),
                "waitings": self._relationships.waiting_ids(account_id),
                "requests": self._relationships.request_ids(account_id),
            }
        )
        if failures:
            logger.warning(
                "Account %s lookups failed: %s", account_id, ", ".join(failures)
            )
            profile_error = failures.get("profile")
            if isinstance(profile_error, UserNotFound):
                raise EmptyProfile() from profile_error
            first = next(iter(failures.values()))
            raise TransportFailure(first) from first

        return Account(
            profile=results["profile"],
            blocked_ids=set(results["blocked"]),
            friend_ids=set(results["friends"]),
            waiting_ids=set(results["waitings"]),
            request_ids=set(results["requests"]),
        )
