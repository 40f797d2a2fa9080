"""Infrastructure layer: concrete implementations of application ports."""

from rapport.infrastructure.memory_cache import InMemoryLocalCache
from rapport.infrastructure.memory_directory import InMemoryDirectory, InMemorySubscription
from rapport.infrastructure.persistence.neo4j_cache import (
    Neo4jLocalCache,
    ensure_cache_constraint,
)

__all__ = [
    "InMemoryDirectory",
    "InMemoryLocalCache",
    "InMemorySubscription",
    "Neo4jLocalCache",
    "ensure_cache_constraint",
]
