"""Registration, login, and account creation. Produces the context a session starts from."""

import logging

from rapport.application.account_aggregator import AccountAggregator
from rapport.application.context import SessionContext
from rapport.application.errors import (
    CantEditAccount,
    InvalidCredentials,
    RequestRejected,
    TransportFailure,
)
from rapport.application.ports import (
    AccountDirectory,
    AuthDirectory,
    ProfileDirectory,
    RelationshipDirectory,
)
from rapport.application.relationship_gateway import call_remote
from rapport.domain import Account, Profile

logger = logging.getLogger(__name__)


class Authenticator:
    def __init__(
        self,
        auth: AuthDirectory,
        *,
        profiles: ProfileDirectory,
        accounts: AccountDirectory,
        relationships: RelationshipDirectory,
    ) -> None:
        self._auth = auth
        self._accounts = accounts
        self._aggregator = AccountAggregator(profiles, accounts, relationships)

    async def register(self, email: str, password: str) -> SessionContext:
        """Create credentials. The profile is created separately with create_account()."""
        email, password = _clean_credentials(email, password)
        try:
            account_id = await self._auth.register(email, password)
        except RequestRejected as exc:
            raise InvalidCredentials() from exc
        except Exception as exc:
            raise TransportFailure(exc) from exc
        logger.info("Registered %s", account_id)
        return SessionContext(account_id)

    async def login(self, email: str, password: str) -> tuple[SessionContext, Account]:
        """Check credentials and build the account from the server.

        Raises InvalidCredentials, EmptyProfile (credentials without a
        profile yet), or TransportFailure.
        """
        email, password = _clean_credentials(email, password)
        try:
            account_id = await self._auth.login(email, password)
        except RequestRejected as exc:
            raise InvalidCredentials() from exc
        except Exception as exc:
            raise TransportFailure(exc) from exc
        account = await self._aggregator.build_account(account_id)
        return SessionContext(account_id), account

    async def create_account(self, context: SessionContext, profile: Profile) -> Account:
        """Create the remote profile for a freshly registered account."""
        if profile.id != context.account_id:
            raise ValueError("Profile id must match the session account id.")
        await call_remote(
            self._accounts.create_account(context.account_id, profile), CantEditAccount
        )
        return Account(profile=profile)


def _clean_credentials(email: str, password: str) -> tuple[str, str]:
    email = (email or "").strip().lower()
    if not email or not password:
        raise InvalidCredentials()
    return email, password
