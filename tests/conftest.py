"""Shared fixtures: an in-memory backend seeded with the signed-in user and a few others."""

import pytest

from rapport.domain import Profile
from rapport.infrastructure import InMemoryDirectory, InMemoryLocalCache

ME = "me"
USERS = ("u1", "u2", "u3", "u4")


@pytest.fixture
def directory() -> InMemoryDirectory:
    directory = InMemoryDirectory()
    directory.add_user(Profile(id=ME, user_name="Me"))
    for user_id in USERS:
        directory.add_user(Profile(id=user_id, user_name=user_id.upper()))
    return directory


@pytest.fixture
def cache() -> InMemoryLocalCache:
    return InMemoryLocalCache(account_id=ME)
