from __future__ import annotations

import math

import pytest

from gallery_ledger.engine.models import (
    EngagementCounts,
    coerce_count,
    coerce_members,
    user_from_raw,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(5, 5), (2.9, 2), ("12", 12), (-3, 0), (True, 0), (None, 0), ("abc", 0), (math.nan, 0)],
)
def test_coerce_count(raw, expected) -> None:
    assert coerce_count(raw) == expected


def test_coerce_members_filters_non_strings() -> None:
    assert coerce_members(["a", "", 1, "b", "a"]) == {"a", "b"}
    assert coerce_members({"a": 1}) == set()


def test_user_from_raw_accepts_legacy_shape() -> None:
    user = user_from_raw("alice", {"email": "a@x", "password": "pw", "viewed": ["p1"], "hearted": "bad"})
    assert user.credential == "pw"
    assert user.viewed_items == {"p1"}
    assert user.hearted_items == set()
    assert user.to_raw() == {"email": "a@x", "password": "pw", "viewed": ["p1"], "hearted": []}
    assert user_from_raw("bob", None).identifier == "bob"


def test_counts_to_dict() -> None:
    counts = EngagementCounts(views=3, hearts=1, has_viewed=True)
    assert counts.to_dict() == {"viewCount": 3, "heartCount": 1, "hasViewed": True, "hasHearted": False}
