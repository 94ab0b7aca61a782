from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock


class KeyedLockRegistry:
    """Per-key mutual exclusion for one process.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the registry does not grow with every key ever used.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, tuple[Lock, int]] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = Lock()
            self._locks[key] = (lock, users + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                current, users = self._locks[key]
                if users <= 1:
                    self._locks.pop(key, None)
                else:
                    self._locks[key] = (current, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()
