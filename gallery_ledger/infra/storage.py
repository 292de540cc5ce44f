"""Storage abstractions for the ledger and user stores."""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Generic, Iterable, TypeVar

import structlog

from ..errors import MalformedStore, PersistenceError

T = TypeVar("T")

Decoder = Callable[[str, Any], T]
Encoder = Callable[[T], Any]

# Strings are matched first so that "//" inside a quoted value survives.
_COMMENT_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*')
_TRAILING_COMMA_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


def _strip_comments(text: str) -> str:
    return _COMMENT_PATTERN.sub(lambda m: m.group(1) or "", text)


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_PATTERN.sub(lambda m: m.group(1) or m.group(2), text)


def parse_store_text(text: str, path: Path | str = "<memory>") -> dict[str, Any]:
    """Parse persisted store text, tolerating ``//`` comments and trailing commas.

    Raises :class:`MalformedStore` when neither the strict nor the tolerant
    parse produces a JSON object.
    """

    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        cleaned = _strip_trailing_commas(_strip_comments(text))
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise MalformedStore(path, str(exc)) from exc
    if not isinstance(data, dict):
        raise MalformedStore(path, f"expected an object, got {type(data).__name__}")
    return data


class RecordStore(ABC, Generic[T]):
    """Keyed record store; callers never touch the backing medium directly."""

    @abstractmethod
    def load(self) -> None:
        """(Re)read every record from the backing medium."""

    @abstractmethod
    def save(self) -> None:
        """Persist every record in one write."""

    @abstractmethod
    def get(self, key: str) -> T | None:
        """Return the record stored under ``key`` if present."""

    @abstractmethod
    def upsert(self, key: str, record: T) -> None:
        """Insert or replace ``record`` under ``key`` (in memory only)."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether it existed."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return stored keys in insertion order."""

    def replace_all(self, records: Dict[str, T]) -> None:
        for key in self.keys():
            self.delete(key)
        for key, record in records.items():
            self.upsert(key, record)

    def items(self) -> Iterable[tuple[str, T]]:
        for key in self.keys():
            record = self.get(key)
            if record is not None:
                yield key, record

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self.keys())


class JsonFileStore(RecordStore[T]):
    """Whole-file JSON persistence with atomic replace and corruption recovery."""

    def __init__(
        self,
        path: Path,
        decode: Decoder[T],
        encode: Encoder[T],
        logger: structlog.BoundLogger | None = None,
        autoload: bool = True,
    ) -> None:
        self.path = path
        self._decode = decode
        self._encode = encode
        self.logger = logger or structlog.get_logger("gallery_ledger.storage")
        self._records: Dict[str, T] = {}
        self._lock = Lock()
        if autoload:
            self.load()

    def load(self) -> None:
        records: Dict[str, T] = {}
        if self.path.exists():
            try:
                raw = self._read_raw()
            except MalformedStore as exc:
                self.logger.error("store_malformed", path=str(self.path), reason=exc.reason)
                self._backup_corrupt()
                raw = {}
            for key, value in raw.items():
                records[str(key)] = self._decode(str(key), value)
        with self._lock:
            self._records = records
        self.logger.debug("store_loaded", path=str(self.path), records=len(records))

    def save(self) -> None:
        with self._lock:
            payload = {key: self._encode(record) for key, record in self._records.items()}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            self.logger.error("store_save_failed", path=str(self.path), error=str(exc))
            raise PersistenceError(f"Could not write {self.path}: {exc}") from exc

    def get(self, key: str) -> T | None:
        with self._lock:
            return self._records.get(key)

    def upsert(self, key: str, record: T) -> None:
        with self._lock:
            self._records[key] = record

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._records.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def _read_raw(self) -> dict[str, Any]:
        try:
            text = self.path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedStore(self.path, f"not valid UTF-8: {exc}") from exc
        return parse_store_text(text, self.path)

    def _backup_corrupt(self) -> None:
        backup = self.path.with_suffix(".corrupt.json")
        try:
            os.replace(self.path, backup)
        except OSError as exc:
            self.logger.warning("store_backup_failed", path=str(self.path), error=str(exc))
            return
        self.logger.warning("store_backed_up", path=str(self.path), backup=str(backup))


__all__ = ["JsonFileStore", "RecordStore", "parse_store_text"]
