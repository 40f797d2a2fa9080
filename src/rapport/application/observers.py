"""Observer registry with explicit removal tokens."""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class ObserverToken:
    """Handle returned by add(); pass it back to remove()."""

    value: int


class ObserverRegistry(Generic[E]):
    def __init__(self) -> None:
        self._observers: dict[ObserverToken, Callable[[E], None]] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._observers)

    def add(self, callback: Callable[[E], None]) -> ObserverToken:
        token = ObserverToken(next(self._counter))
        self._observers[token] = callback
        return token

    def remove(self, token: ObserverToken) -> bool:
        """Remove the observer. Returns False if the token was unknown."""
        return self._observers.pop(token, None) is not None

    def notify(self, event: E) -> None:
        """Deliver event to every observer; one failing observer does not stop the rest."""
        for token, callback in list(self._observers.items()):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Observer %s failed on %s", token.value, type(event).__name__
                )
