"""Fan-out/join over a fixed set of keyed awaitables."""

import asyncio
from collections.abc import Awaitable, Mapping
from typing import TypeVar

K = TypeVar("K")
V = TypeVar("V")


async def gather_settled(
    calls: Mapping[K, Awaitable[V]],
) -> tuple[dict[K, V], dict[K, Exception]]:
    """Run every call concurrently and wait for all of them.

    Returns (results, failures), both keyed like calls and in calls' order,
    so the outcome depends only on which branches failed, not on when.
    A failing branch never cancels its siblings. Cancellation is re-raised.
    """
    keys = list(calls)
    outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)
    results: dict[K, V] = {}
    failures: dict[K, Exception] = {}
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            failures[key] = outcome
        else:
            results[key] = outcome
    return results, failures
