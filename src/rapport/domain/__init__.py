"""Domain layer: entities and value objects. No dependencies on outer layers."""

from rapport.domain.entities import (
    Account,
    ChangeDelta,
    Chat,
    FeedScope,
    Profile,
    Request,
)

__all__ = ["Account", "ChangeDelta", "Chat", "FeedScope", "Profile", "Request"]
