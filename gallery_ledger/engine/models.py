"""Ledger, user and catalog records plus their normalisation from raw JSON."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LedgerEntry:
    """Engagement counters for one catalog item."""

    id: str
    view_count: int = 0
    hearted_by: set[str] = field(default_factory=set)

    @property
    def heart_count(self) -> int:
        return len(self.hearted_by)

    def to_raw(self) -> dict[str, Any]:
        return {
            "views": self.view_count,
            "hearts": self.heart_count,
            "usersHearted": sorted(self.hearted_by),
        }


@dataclass
class UserRecord:
    """Registered user and the per-item markers tracked for them."""

    identifier: str
    email: str = ""
    credential: str = ""
    viewed_items: set[str] = field(default_factory=set)
    hearted_items: set[str] = field(default_factory=set)

    def to_raw(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "password": self.credential,
            "viewed": sorted(self.viewed_items),
            "hearted": sorted(self.hearted_items),
        }


@dataclass(frozen=True, slots=True)
class CatalogBlock:
    """One item block lifted out of the gallery markup."""

    id: str
    raw_content: str
    image_source: str = ""


@dataclass(frozen=True, slots=True)
class EngagementCounts:
    """Counts returned to callers after a query or mutation."""

    views: int
    hearts: int
    has_viewed: bool = False
    has_hearted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "viewCount": self.views,
            "heartCount": self.hearts,
            "hasViewed": self.has_viewed,
            "hasHearted": self.has_hearted,
        }


def coerce_count(value: Any) -> int:
    """Return ``value`` as a non-negative int, falling back to 0."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, str):
        try:
            return coerce_count(float(value.strip()))
        except ValueError:
            return 0
    return 0


def coerce_members(value: Any) -> set[str]:
    """Return the string members of a list-like value; anything else is empty."""

    if not isinstance(value, (list, tuple, set, frozenset)):
        return set()
    return {item for item in value if isinstance(item, str) and item}


def entry_from_raw(item_id: str, raw: Any) -> LedgerEntry:
    """Build a :class:`LedgerEntry` from an untrusted persisted record.

    The stored ``hearts`` field is ignored; the heart count is always derived
    from ``usersHearted``.
    """

    if not isinstance(raw, dict):
        return LedgerEntry(id=item_id)
    return LedgerEntry(
        id=item_id,
        view_count=coerce_count(raw.get("views")),
        hearted_by=coerce_members(raw.get("usersHearted")),
    )


def entry_to_raw(entry: LedgerEntry) -> dict[str, Any]:
    return entry.to_raw()


def user_from_raw(username: str, raw: Any) -> UserRecord:
    if not isinstance(raw, dict):
        return UserRecord(identifier=username)
    email = raw.get("email")
    credential = raw.get("password", raw.get("credential"))
    return UserRecord(
        identifier=username,
        email=email if isinstance(email, str) else "",
        credential=credential if isinstance(credential, str) else "",
        viewed_items=coerce_members(raw.get("viewed")),
        hearted_items=coerce_members(raw.get("hearted")),
    )


def user_to_raw(user: UserRecord) -> dict[str, Any]:
    return user.to_raw()


__all__ = [
    "CatalogBlock",
    "EngagementCounts",
    "LedgerEntry",
    "UserRecord",
    "coerce_count",
    "coerce_members",
    "entry_from_raw",
    "entry_to_raw",
    "user_from_raw",
    "user_to_raw",
]
