from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from typing import Hashable, Iterable, Iterator


class KeyedLock:
    """Process-local mutexes keyed by an arbitrary hashable, reference counted
    so idle keys do not accumulate."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._waiters[key] = self._waiters.get(key, 0) + 1
            return lock

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            remaining = self._waiters[key] - 1
            if remaining:
                self._waiters[key] = remaining
            else:
                del self._waiters[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._checkout(key)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            self._checkin(key)

    @contextmanager
    def hold_many(self, keys: Iterable[Hashable]) -> Iterator[None]:
        # Keys are always acquired in sorted order.
        ordered = sorted(set(keys))
        acquired: list[Hashable] = []
        locks: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                lock.acquire()
                acquired.append(key)
                locks.append(lock)
            yield
        finally:
            for key, lock in zip(reversed(acquired), reversed(locks)):
                lock.release()
                self._checkin(key)

    def active_keys(self) -> list[Hashable]:
        with self._guard:
            return list(self._locks)


summary_locks = KeyedLock()


def summary_key(health_profile_id: str, day: date) -> tuple[str, str]:
    return (health_profile_id, day.isoformat())
