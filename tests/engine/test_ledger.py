from __future__ import annotations

import json
import random
from concurrent.futures import ThreadPoolExecutor

import pytest

from gallery_ledger.engine import EngagementLedger, UserDirectory
from gallery_ledger.engine.models import entry_from_raw, entry_to_raw, user_from_raw, user_to_raw
from gallery_ledger.errors import PersistenceError, Unauthenticated, UserExists
from gallery_ledger.infra import JsonFileStore


def _assert_mirrors(ledger: EngagementLedger, users: UserDirectory) -> None:
    for username, user in users.store.items():
        for item_id in set(user.hearted_items) | set(ledger.ids()):
            entry = ledger.get(item_id)
            in_entry = entry is not None and username in entry.hearted_by
            assert (item_id in user.hearted_items) == in_entry, (username, item_id)
    for item_id in ledger.ids():
        entry = ledger.get(item_id)
        assert entry.heart_count == len(entry.hearted_by)


def test_anonymous_view_then_query(ledger: EngagementLedger) -> None:
    ledger.record_anonymous_view("x")
    counts = ledger.query("x")
    assert counts.to_dict() == {
        "viewCount": 1,
        "heartCount": 0,
        "hasViewed": False,
        "hasHearted": False,
    }


def test_anonymous_views_always_count(ledger: EngagementLedger) -> None:
    for _ in range(7):
        ledger.record_anonymous_view("panda1")
    assert ledger.query("panda1").views == 7


def test_user_view_counts_once(ledger: EngagementLedger, users: UserDirectory) -> None:
    first = ledger.record_user_view("panda1", "alice")
    second = ledger.record_user_view("panda1", "alice")
    assert first.views == 1
    assert second.views == 1
    assert second.has_viewed
    assert users.get("alice").viewed_items == {"panda1"}


def test_record_view_unknown_user_degrades_to_anonymous(ledger: EngagementLedger) -> None:
    ledger.record_view("panda1", "mallory")
    counts = ledger.record_view("panda1", "mallory")
    assert counts.views == 2
    assert not counts.has_viewed


def test_record_view_dispatches_on_user(ledger: EngagementLedger) -> None:
    ledger.record_view("panda1", "alice")
    ledger.record_view("panda1", "alice")
    ledger.record_view("panda1")
    assert ledger.query("panda1", "alice").views == 2


def test_toggle_heart_is_its_own_inverse(ledger: EngagementLedger, users: UserDirectory) -> None:
    ledger.toggle_heart("x", "bob")
    before = ledger.query("x").hearts
    on = ledger.toggle_heart("x", "alice")
    assert on.hearts == before + 1
    assert on.has_hearted
    assert "x" in users.get("alice").hearted_items
    off = ledger.toggle_heart("x", "alice")
    assert off.hearts == before
    assert not off.has_hearted
    assert "x" not in users.get("alice").hearted_items


def test_toggle_heart_requires_known_user(ledger: EngagementLedger) -> None:
    with pytest.raises(Unauthenticated):
        ledger.toggle_heart("x", None)
    with pytest.raises(Unauthenticated):
        ledger.toggle_heart("x", "mallory")


def test_random_toggle_sequences_keep_invariants(ledger: EngagementLedger, users: UserDirectory) -> None:
    rng = random.Random(1234)
    for _ in range(60):
        ledger.toggle_heart(rng.choice(["a", "b", "c"]), rng.choice(["alice", "bob"]))
        _assert_mirrors(ledger, users)


def test_query_does_not_mutate_or_persist(ledger: EngagementLedger, ledger_path) -> None:
    counts = ledger.query("fresh", "alice")
    assert counts.views == 0 and counts.hearts == 0
    assert not counts.has_viewed and not counts.has_hearted
    assert not ledger_path.exists()


def test_mutations_persist_full_store(ledger: EngagementLedger, ledger_path, users_path) -> None:
    ledger.record_anonymous_view("panda1")
    ledger.toggle_heart("panda2", "alice")
    stored = json.loads(ledger_path.read_text(encoding="utf-8"))
    assert stored["panda1"] == {"views": 1, "hearts": 0, "usersHearted": []}
    assert stored["panda2"] == {"views": 0, "hearts": 1, "usersHearted": ["alice"]}
    stored_users = json.loads(users_path.read_text(encoding="utf-8"))
    assert stored_users["alice"]["hearted"] == ["panda2"]


def test_ledger_reloads_from_disk(ledger: EngagementLedger, ledger_path, users_path) -> None:
    ledger.record_user_view("panda1", "alice")
    ledger.toggle_heart("panda1", "alice")

    users = UserDirectory(JsonFileStore(users_path, user_from_raw, user_to_raw))
    reloaded = EngagementLedger(JsonFileStore(ledger_path, entry_from_raw, entry_to_raw), users)
    counts = reloaded.query("panda1", "alice")
    assert (counts.views, counts.hearts, counts.has_viewed, counts.has_hearted) == (1, 1, True, True)


def test_reset_all_replaces_entries(ledger: EngagementLedger, users: UserDirectory) -> None:
    ledger.record_anonymous_view("old")
    ledger.toggle_heart("panda1", "alice")
    ledger.reset_all(["panda1", "panda2"])
    assert sorted(ledger.ids()) == ["panda1", "panda2"]
    assert ledger.snapshot()["panda1"] == {"views": 0, "hearts": 0, "usersHearted": []}
    assert users.get("alice").hearted_items == set()
    _assert_mirrors(ledger, users)


def test_synchronize_keeps_existing_counts(ledger: EngagementLedger) -> None:
    ledger.record_anonymous_view("a")
    ledger.record_anonymous_view("c")
    added, removed = ledger.synchronize(["a", "b"])
    assert added == ["b"]
    assert removed == ["c"]
    assert ledger.query("a").views == 1


def test_concurrent_toggles_do_not_lose_updates(ledger: EngagementLedger, users: UserDirectory) -> None:
    names = [f"user{i}" for i in range(12)]
    for name in names:
        users.register(name, f"{name}@example.com", "pw")
    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda name: ledger.toggle_heart("hot", name), names))
    assert ledger.query("hot").hearts == len(names)
    _assert_mirrors(ledger, users)


def test_persistence_failure_surfaces(ledger: EngagementLedger, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_write(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("pathlib.Path.write_text", broken_write)
    with pytest.raises(PersistenceError):
        ledger.record_anonymous_view("panda1")
    # The in-memory increment already happened.
    assert ledger.get("panda1").view_count == 1


def test_user_directory_register_and_authenticate(users: UserDirectory) -> None:
    with pytest.raises(UserExists):
        users.register("alice", "other@example.com", "pw")
    with pytest.raises(ValueError):
        users.register("carol", "", "pw")
    assert users.authenticate("alice", "alice@example.com", "pw-a") is not None
    assert users.authenticate("alice", "alice@example.com", "wrong") is None
    assert users.authenticate("nobody", "x", "y") is None


def test_bulk_removal_releases_item_locks(ledger: EngagementLedger) -> None:
    for item_id in ("a", "b", "c"):
        ledger.record_anonymous_view(item_id)
    ledger.synchronize(["a"])
    assert set(ledger._item_locks) == {"a"}
    ledger.reset_all(["z"])
    assert ledger._item_locks == {}
