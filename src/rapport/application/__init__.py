"""Application layer: use cases, ports, and events. Depends only on domain."""

from rapport.application.account_aggregator import AccountAggregator
from rapport.application.auth import Authenticator
from rapport.application.change_feed import ChangeFeedSubscriber
from rapport.application.context import SessionContext
from rapport.application.dto import (
    ChatAdded,
    ChatRemoved,
    FeedEvent,
    ProfileChanged,
    ProfileRemoved,
    RequestAdded,
    RequestRemoved,
    SentRequestsChanged,
)
from rapport.application.errors import (
    AccountError,
    CantAcceptRequest,
    CantBlock,
    CantCancelRequest,
    CantDenyRequest,
    CantEditAccount,
    CantRecoverAccount,
    CantRemoveAccount,
    CantRemoveFriend,
    CantSendRequest,
    CantUnblock,
    DirectoryError,
    EmptyProfile,
    InvalidCredentials,
    NotFound,
    OperationRejected,
    RemovedAccount,
    RequestRejected,
    TransportFailure,
    UserNotFound,
)
from rapport.application.join import gather_settled
from rapport.application.observers import ObserverRegistry, ObserverToken
from rapport.application.ports import (
    AccountDirectory,
    AuthDirectory,
    LocalCache,
    ProfileDirectory,
    RelationshipDirectory,
    Subscription,
)
from rapport.application.profile_browser import ProfileBrowser
from rapport.application.relationship_gateway import RelationshipGateway
from rapport.application.session import AccountSession

__all__ = [
    "AccountAggregator",
    "AccountDirectory",
    "AccountError",
    "AccountSession",
    "AuthDirectory",
    "Authenticator",
    "CantAcceptRequest",
    "CantBlock",
    "CantCancelRequest",
    "CantDenyRequest",
    "CantEditAccount",
    "CantRecoverAccount",
    "CantRemoveAccount",
    "CantRemoveFriend",
    "CantSendRequest",
    "CantUnblock",
    "ChangeFeedSubscriber",
    "ChatAdded",
    "ChatRemoved",
    "DirectoryError",
    "EmptyProfile",
    "FeedEvent",
    "InvalidCredentials",
    "LocalCache",
    "NotFound",
    "ObserverRegistry",
    "ObserverToken",
    "OperationRejected",
    "ProfileBrowser",
    "ProfileChanged",
    "ProfileDirectory",
    "ProfileRemoved",
    "RelationshipDirectory",
    "RelationshipGateway",
    "RemovedAccount",
    "RequestAdded",
    "RequestRejected",
    "RequestRemoved",
    "SentRequestsChanged",
    "SessionContext",
    "Subscription",
    "TransportFailure",
    "UserNotFound",
    "gather_settled",
]
