"""Engagement ledger: per-item view and heart counters backed by a record store."""

from __future__ import annotations

from threading import Lock, RLock
from typing import Iterable

import structlog

from ..errors import Unauthenticated, UserExists
from ..infra.storage import RecordStore
from .models import EngagementCounts, LedgerEntry, UserRecord

UserRef = UserRecord | str | None


class UserDirectory:
    """Registered users and the view/heart markers kept per user."""

    def __init__(
        self,
        store: RecordStore[UserRecord],
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or structlog.get_logger("gallery_ledger.users")
        self._lock = Lock()

    def get(self, username: str | None) -> UserRecord | None:
        if not username:
            return None
        return self.store.get(username)

    def register(self, username: str, email: str, credential: str) -> UserRecord:
        username = username.strip()
        if not username or not email or not credential:
            raise ValueError("username, email and credential are required")
        with self._lock:
            if self.store.get(username) is not None:
                raise UserExists(f"Username taken: {username}")
            user = UserRecord(identifier=username, email=email, credential=credential)
            self.store.upsert(username, user)
            self.store.save()
        self.logger.info("user_registered", user=username)
        return user

    def authenticate(self, username: str, email: str, credential: str) -> UserRecord | None:
        # Plain comparison against the stored values.
        user = self.get(username)
        if user is None or user.credential != credential or user.email != email:
            self.logger.info("login_rejected", user=username)
            return None
        return user

    def forget_items(self, item_ids: Iterable[str]) -> bool:
        """Drop view/heart markers for ``item_ids`` from every user."""

        targets = set(item_ids)
        changed = False
        with self._lock:
            for _, user in self.store.items():
                if user.viewed_items & targets or user.hearted_items & targets:
                    user.viewed_items -= targets
                    user.hearted_items -= targets
                    changed = True
        return changed

    def save(self) -> None:
        self.store.save()


class EngagementLedger:
    """Record views and hearts per item, mirrored into the user directory.

    Every mutation persists the whole ledger (and the user store when a user
    record changed) before returning. Read-modify-write sequences run under a
    lock keyed by item id, so concurrent toggles on one item cannot lose an
    update.
    """

    def __init__(
        self,
        store: RecordStore[LedgerEntry],
        users: UserDirectory,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.users = users
        self.logger = logger or structlog.get_logger("gallery_ledger.ledger")
        self._item_locks: dict[str, Lock] = {}
        self._registry_lock = Lock()
        self._persist_lock = RLock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def record_view(self, item_id: str, user: UserRef = None) -> EngagementCounts:
        record = self._resolve_user(user)
        if record is None:
            return self.record_anonymous_view(item_id)
        return self.record_user_view(item_id, record)

    def record_anonymous_view(self, item_id: str) -> EngagementCounts:
        with self._lock_for(item_id):
            entry = self._entry(item_id)
            entry.view_count += 1
            self._persist(users_changed=False)
        self.logger.debug("view_recorded", item=item_id, views=entry.view_count, anonymous=True)
        return self._counts(entry, None)

    def record_user_view(self, item_id: str, user: UserRef) -> EngagementCounts:
        record = self._resolve_user(user)
        if record is None:
            return self.record_anonymous_view(item_id)
        with self._lock_for(item_id):
            entry = self._entry(item_id)
            if item_id not in record.viewed_items:
                entry.view_count += 1
                record.viewed_items.add(item_id)
                self._persist(users_changed=True)
                self.logger.debug(
                    "view_recorded", item=item_id, views=entry.view_count, user=record.identifier
                )
        return self._counts(entry, record)

    def toggle_heart(self, item_id: str, user: UserRef) -> EngagementCounts:
        record = self._resolve_user(user)
        if record is None:
            raise Unauthenticated(user if isinstance(user, str) else None)
        with self._lock_for(item_id):
            entry = self._entry(item_id)
            if record.identifier in entry.hearted_by:
                entry.hearted_by.discard(record.identifier)
                record.hearted_items.discard(item_id)
                hearted = False
            else:
                entry.hearted_by.add(record.identifier)
                record.hearted_items.add(item_id)
                hearted = True
            self._persist(users_changed=True)
        self.logger.info(
            "heart_toggled",
            item=item_id,
            user=record.identifier,
            hearted=hearted,
            hearts=entry.heart_count,
        )
        return self._counts(entry, record)

    def reset_all(self, item_ids: Iterable[str]) -> None:
        """Replace every entry with zeroed entries for exactly ``item_ids``."""

        ids = list(dict.fromkeys(item_ids))
        with self._persist_lock:
            previous = self.store.keys()
            self.store.replace_all({item_id: LedgerEntry(id=item_id) for item_id in ids})
            users_changed = self.users.forget_items(set(previous) | set(ids))
            self._persist(users_changed=users_changed)
            self._drop_locks(set(previous) - set(ids))
        self.logger.warning("ledger_reset", items=len(ids), dropped=len(set(previous) - set(ids)))

    def synchronize(self, item_ids: Iterable[str]) -> tuple[list[str], list[str]]:
        """Align the entry set with ``item_ids``; existing counters are kept.

        Returns ``(added, removed)`` in the order they were applied.
        """

        wanted = list(dict.fromkeys(item_ids))
        wanted_set = set(wanted)
        with self._persist_lock:
            added = [item_id for item_id in wanted if self.store.get(item_id) is None]
            for item_id in added:
                self.store.upsert(item_id, LedgerEntry(id=item_id))
            removed = [item_id for item_id in self.store.keys() if item_id not in wanted_set]
            for item_id in removed:
                self.store.delete(item_id)
            users_changed = self.users.forget_items(removed) if removed else False
            self._persist(users_changed=users_changed)
            self._drop_locks(removed)
        return added, removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def query(self, item_id: str, user: UserRef = None) -> EngagementCounts:
        entry = self._entry(item_id)
        return self._counts(entry, self._resolve_user(user))

    def snapshot(self) -> dict[str, dict]:
        """Return every entry in its persisted shape."""

        return {item_id: entry.to_raw() for item_id, entry in self.store.items()}

    def ids(self) -> list[str]:
        return self.store.keys()

    def get(self, item_id: str) -> LedgerEntry | None:
        return self.store.get(item_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _lock_for(self, item_id: str) -> Lock:
        with self._registry_lock:
            lock = self._item_locks.get(item_id)
            if lock is None:
                lock = self._item_locks[item_id] = Lock()
            return lock

    def _drop_locks(self, item_ids: Iterable[str]) -> None:
        with self._registry_lock:
            for item_id in item_ids:
                lock = self._item_locks.get(item_id)
                if lock is not None and not lock.locked():
                    del self._item_locks[item_id]

    def _entry(self, item_id: str) -> LedgerEntry:
        entry = self.store.get(item_id)
        if entry is None:
            entry = LedgerEntry(id=item_id)
            self.store.upsert(item_id, entry)
        return entry

    def _resolve_user(self, user: UserRef) -> UserRecord | None:
        if isinstance(user, UserRecord):
            # Only records owned by the directory count as valid users.
            return self.users.get(user.identifier)
        return self.users.get(user)

    def _persist(self, users_changed: bool) -> None:
        with self._persist_lock:
            self.store.save()
            if users_changed:
                self.users.save()

    @staticmethod
    def _counts(entry: LedgerEntry, user: UserRecord | None) -> EngagementCounts:
        if user is None:
            return EngagementCounts(views=entry.view_count, hearts=entry.heart_count)
        return EngagementCounts(
            views=entry.view_count,
            hearts=entry.heart_count,
            has_viewed=entry.id in user.viewed_items,
            has_hearted=user.identifier in entry.hearted_by,
        )


__all__ = ["EngagementLedger", "UserDirectory"]
