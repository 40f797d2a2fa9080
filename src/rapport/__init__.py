"""
Rapport core: clean-architecture layout.

- domain: entities (Profile, Account, Chat, Request, ChangeDelta). No outer dependencies.
- application: use cases (AccountAggregator, RelationshipGateway, ChangeFeedSubscriber,
  AccountSession, Authenticator), ports (directories, LocalCache), events.
- infrastructure: adapters (InMemoryDirectory, InMemoryLocalCache, Neo4jLocalCache).
"""

from rapport.application import (
    AccountAggregator,
    AccountError,
    AccountSession,
    Authenticator,
    ChangeFeedSubscriber,
    EmptyProfile,
    LocalCache,
    NotFound,
    OperationRejected,
    RelationshipGateway,
    SessionContext,
    TransportFailure,
)
from rapport.domain import Account, ChangeDelta, Chat, FeedScope, Profile, Request
from rapport.infrastructure import InMemoryDirectory, InMemoryLocalCache, Neo4jLocalCache

__all__ = [
    "Account",
    "AccountAggregator",
    "AccountError",
    "AccountSession",
    "Authenticator",
    "ChangeDelta",
    "ChangeFeedSubscriber",
    "Chat",
    "EmptyProfile",
    "FeedScope",
    "InMemoryDirectory",
    "InMemoryLocalCache",
    "LocalCache",
    "Neo4jLocalCache",
    "NotFound",
    "OperationRejected",
    "Profile",
    "RelationshipGateway",
    "Request",
    "SessionContext",
    "TransportFailure",
]
