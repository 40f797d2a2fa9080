"""Explicit session context handed to every component that acts for an account."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SessionContext:
    account_id: str

    def __post_init__(self):
        if not self.account_id or not self.account_id.strip():
            raise ValueError("SessionContext account_id must be non-empty.")
