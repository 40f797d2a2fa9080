"""In-memory implementation of LocalCache (no DB)."""

from rapport.domain import Account, Chat, Request


class InMemoryLocalCache:
    """Stores one account's state in memory. Chats and requests are scoped to account_id.
    Accounts are stored as copies so later mutation of the live aggregate does not leak in.
    """

    def __init__(self, account_id: str = "default") -> None:
        self._account_id = account_id
        self._accounts: dict[str, Account] = {}
        self._chats: dict[str, Chat] = {}
        self._requests: dict[str, Request] = {}

    async def load(self, account_id: str) -> Account | None:
        account = self._accounts.get(account_id)
        if account is None:
            return None
        return account.copy()

    async def save(self, account: Account) -> None:
        self._accounts[account.id] = account.copy()

    async def list_chats(self) -> list[Chat]:
        return list(self._chats.values())

    async def upsert_chat(self, chat: Chat) -> None:
        self._chats[chat.friend_id] = chat

    async def remove_chat(self, friend_id: str) -> None:
        self._chats.pop(friend_id, None)

    async def list_requests(self) -> list[Request]:
        return list(self._requests.values())

    async def upsert_request(self, request: Request) -> None:
        self._requests[request.sender_id] = request

    async def remove_request(self, sender_id: str) -> None:
        self._requests.pop(sender_id, None)

    async def clear(self) -> None:
        self._accounts.pop(self._account_id, None)
        self._chats.clear()
        self._requests.clear()
