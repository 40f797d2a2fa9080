"""Events delivered to change-feed observers."""

from dataclasses import dataclass

from rapport.domain import Chat, Profile, Request


@dataclass(frozen=True)
class ChatAdded:
    chat: Chat


@dataclass(frozen=True)
class ChatRemoved:
    chat: Chat


@dataclass(frozen=True)
class RequestAdded:
    request: Request


@dataclass(frozen=True)
class RequestRemoved:
    request: Request


@dataclass(frozen=True)
class SentRequestsChanged:
    added: frozenset[str]
    removed: frozenset[str]


@dataclass(frozen=True)
class ProfileChanged:
    profile: Profile


@dataclass(frozen=True)
class ProfileRemoved:
    """The signed-in account was soft-deleted; the session should end."""

    profile: Profile


FeedEvent = (
    ChatAdded
    | ChatRemoved
    | RequestAdded
    | RequestRemoved
    | SentRequestsChanged
    | ProfileChanged
    | ProfileRemoved
)
