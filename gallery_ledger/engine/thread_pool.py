"""Thread pool abstraction for running independent network probes side by side."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class ThreadPoolManager:
    """Lazily create one shared executor and map work through it in input order."""

    def __init__(self, default_workers: int = 8) -> None:
        if default_workers < 1:
            raise ValueError("default_workers must be >= 1")
        self.default_workers = default_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def get(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.default_workers, thread_name_prefix="probe"
                )
            return self._executor

    def map_ordered(self, func: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Run ``func`` over ``items`` concurrently; results keep input order."""

        items = list(items)
        if not items:
            return []
        if len(items) == 1 or self.default_workers == 1:
            return [func(item) for item in items]
        futures = [self.get().submit(func, item) for item in items]
        return [future.result() for future in futures]

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


__all__ = ["ThreadPoolManager"]
