from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

from ..core.exceptions import ConcurrencyConflict


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """One mutex per record key; different keys never contend.

    An entry lives only while some thread holds or waits on its key.
    """

    def __init__(self, *, timeout: float = 5.0, name: str = "record"):
        self._timeout = float(timeout)
        self._name = name
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
        try:
            if not entry.lock.acquire(timeout=self._timeout):
                raise ConcurrencyConflict(f"{self._name} {key!r} is busy, retry the operation")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]
