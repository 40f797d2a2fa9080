"""Neo4j implementation of LocalCache over the async driver (neo4j.AsyncGraphDatabase).
Graph: (a:CachedAccount {id, blocked_ids, friend_ids, waiting_ids, request_ids})
  -[:HAS_PROFILE]->(:CachedProfile)
  -[:HAS_CHAT]->(:CachedChat {friend_id, ...profile})
  -[:HAS_REQUEST]->(:CachedRequest {sender_id, ...profile}).
Every write uses SET n = $props, so a record is fully replaced, never merged.
"""

from datetime import datetime

from rapport.domain import Account, Chat, Profile, Request

_CONSTRAINT_QUERY = """
CREATE CONSTRAINT cached_account_id IF NOT EXISTS
FOR (a:CachedAccount) REQUIRE a.id IS UNIQUE
"""


async def ensure_cache_constraint(driver) -> None:
    """Create unique constraint on CachedAccount(id) if missing."""
    async with driver.session() as session:
        result = await session.run(_CONSTRAINT_QUERY)
        await result.consume()


def _datetime_to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _iso_to_datetime(s: str | None) -> datetime | None:
    if not s:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _profile_to_props(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "user_name": profile.user_name,
        "info": profile.info,
        "sex": profile.sex,
        "country": profile.country,
        "city": profile.city,
        "birthday": profile.birthday,
        "image_url": profile.image_url,
        "removed": profile.removed,
        "online": profile.online,
        "last_activity": _datetime_to_iso(profile.last_activity),
        "posts_count": profile.posts_count,
    }


def _node_to_profile(node) -> Profile:
    return Profile(
        id=node["id"],
        user_name=node.get("user_name") or "",
        info=node.get("info") or "",
        sex=node.get("sex") or "",
        country=node.get("country") or "",
        city=node.get("city") or "",
        birthday=node.get("birthday") or "",
        image_url=node.get("image_url") or "",
        removed=bool(node.get("removed")),
        online=bool(node.get("online")),
        last_activity=_iso_to_datetime(node.get("last_activity")),
        posts_count=int(node.get("posts_count") or 0),
    )


class Neo4jLocalCache:
    """Caches one account's state in Neo4j, scoped by account_id."""

    def __init__(self, driver: object, account_id: str = "default") -> None:
        self._driver = driver
        self._account_id = account_id

    async def load(self, account_id: str) -> Account | None:
        async with self._driver.session() as session:
            result = await session.run(
                """
                MATCH (a:CachedAccount {id: $account_id})-[:HAS_PROFILE]->(p:CachedProfile)
                RETURN a, p
                """,
                account_id=account_id,
            )
            record = await result.single()
        if not record:
            return None
        a = record["a"]
        return Account(
            profile=_node_to_profile(record["p"]),
            blocked_ids=set(a.get("blocked_ids") or []),
            friend_ids=set(a.get("friend_ids") or []),
            waiting_ids=set(a.get("waiting_ids") or []),
            request_ids=set(a.get("request_ids") or []),
        )

    async def save(self, account: Account) -> None:
        await self._write(
            """
            MERGE (a:CachedAccount {id: $account_id})
            SET a.blocked_ids = $blocked_ids,
                a.friend_ids = $friend_ids,
                a.waiting_ids = $waiting_ids,
                a.request_ids = $request_ids
            MERGE (a)-[:HAS_PROFILE]->(p:CachedProfile)
            SET p = $profile
            """,
            account_id=account.id,
            blocked_ids=sorted(account.blocked_ids),
            friend_ids=sorted(account.friend_ids),
            waiting_ids=sorted(account.waiting_ids),
            request_ids=sorted(account.request_ids),
            profile=_profile_to_props(account.profile),
        )

    async def list_chats(self) -> list[Chat]:
        async with self._driver.session() as session:
            result = await session.run(
                """
                MATCH (:CachedAccount {id: $account_id})-[:HAS_CHAT]->(c:CachedChat)
                RETURN c
                ORDER BY c.friend_id
                """,
                account_id=self._account_id,
            )
            return [
                Chat(friend_id=rec["c"]["friend_id"], friend=_node_to_profile(rec["c"]))
                async for rec in result
            ]

    async def upsert_chat(self, chat: Chat) -> None:
        props = _profile_to_props(chat.friend)
        props["friend_id"] = chat.friend_id
        await self._write(
            """
            MERGE (a:CachedAccount {id: $account_id})
            MERGE (a)-[:HAS_CHAT]->(c:CachedChat {friend_id: $friend_id})
            SET c = $props
            """,
            account_id=self._account_id,
            friend_id=chat.friend_id,
            props=props,
        )

    async def remove_chat(self, friend_id: str) -> None:
        await self._write(
            """
            MATCH (:CachedAccount {id: $account_id})-[:HAS_CHAT]->(c:CachedChat {friend_id: $friend_id})
            DETACH DELETE c
            """,
            account_id=self._account_id,
            friend_id=friend_id,
        )

    async def list_requests(self) -> list[Request]:
        async with self._driver.session() as session:
            result = await session.run(
                """
                MATCH (:CachedAccount {id: $account_id})-[:HAS_REQUEST]->(r:CachedRequest)
                RETURN r
                ORDER BY r.sender_id
                """,
                account_id=self._account_id,
            )
            return [
                Request(sender_id=rec["r"]["sender_id"], sender=_node_to_profile(rec["r"]))
                async for rec in result
            ]

    async def upsert_request(self, request: Request) -> None:
        props = _profile_to_props(request.sender)
        props["sender_id"] = request.sender_id
        await self._write(
            """
            MERGE (a:CachedAccount {id: $account_id})
            MERGE (a)-[:HAS_REQUEST]->(r:CachedRequest {sender_id: $sender_id})
            SET r = $props
            """,
            account_id=self._account_id,
            sender_id=request.sender_id,
            props=props,
        )

    async def remove_request(self, sender_id: str) -> None:
        await self._write(
            """
            MATCH (:CachedAccount {id: $account_id})-[:HAS_REQUEST]->(r:CachedRequest {sender_id: $sender_id})
            DETACH DELETE r
            """,
            account_id=self._account_id,
            sender_id=sender_id,
        )

    async def clear(self) -> None:
        await self._write(
            """
            MATCH (a:CachedAccount {id: $account_id})
            OPTIONAL MATCH (a)-->(n)
            WITH a, collect(n) AS owned
            FOREACH (x IN owned | DETACH DELETE x)
            DETACH DELETE a
            """,
            account_id=self._account_id,
        )

    async def _write(self, query: str, **params) -> None:
        async with self._driver.session() as session:
            result = await session.run(query, **params)
            await result.consume()
