#!/usr/bin/env python3
"""Drop the cached state (account, chats, requests) of one or more accounts from Neo4j.

Usage: clear_account_cache.py ACCOUNT_ID [ACCOUNT_ID ...]
       clear_account_cache.py --all
Run from repo root with .env (NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD).
Remote account data is not touched; the next launch rebuilds the cache.
"""
import asyncio
import logging
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from dotenv import load_dotenv  # noqa: E402
from neo4j import AsyncGraphDatabase  # noqa: E402

from rapport.infrastructure import Neo4jLocalCache  # noqa: E402

load_dotenv(REPO_ROOT / ".env")

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

_FIND_CACHED = """
MATCH (a:CachedAccount)
RETURN a.id AS account_id
"""


async def clear(account_ids: list[str]) -> int:
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    driver = AsyncGraphDatabase.driver(uri, auth=(user, password))
    try:
        if account_ids == ["--all"]:
            async with driver.session() as session:
                result = await session.run(_FIND_CACHED)
                account_ids = [r["account_id"] async for r in result if r["account_id"]]
        if not account_ids:
            logger.info("No cached accounts.")
            return 0
        for account_id in account_ids:
            await Neo4jLocalCache(driver, account_id=account_id).clear()
        logger.info("Cleared cache for %d account(s): %s", len(account_ids), account_ids)
        return 0
    finally:
        await driver.close()


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__)
        return 2
    return asyncio.run(clear(argv))


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
