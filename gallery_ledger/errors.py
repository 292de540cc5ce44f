"""Exception taxonomy shared by the ledger, stores and catalog tooling."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all gallery-ledger failures."""


class Unauthenticated(LedgerError):
    """Raised when a heart toggle arrives without a known user."""

    def __init__(self, user_id: str | None = None) -> None:
        self.user_id = user_id
        label = user_id if user_id else "anonymous"
        super().__init__(f"Login required (user: {label})")


class UserExists(LedgerError):
    """Raised when registering a username that is already taken."""


class MalformedStore(LedgerError):
    """Persisted store text could not be parsed into a mapping."""

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed store {path}: {reason}")


class PersistenceError(LedgerError):
    """Saving a store failed after the in-memory state was already changed."""


class ExtractionIncomplete(LedgerError):
    """A catalog block was opened but never closed before input ran out."""

    def __init__(self, block_id: str, offset: int) -> None:
        self.block_id = block_id
        self.offset = offset
        super().__init__(f"Unterminated block {block_id!r} at offset {offset}")


class ProbeFailure(LedgerError):
    """Network, timeout or URL error raised while probing a remote source."""


__all__ = [
    "ExtractionIncomplete",
    "LedgerError",
    "MalformedStore",
    "PersistenceError",
    "ProbeFailure",
    "Unauthenticated",
    "UserExists",
]
