"""
KeyedLocks -- one mutex per entity key.

Services serialize writers per record by locking ``booking:<id>``,
``access_request:<id>`` or ``email:<addr>``.  Writers that need several
keys pass them to ``hold`` in a fixed order (request before email).

A key's lock exists only while some thread holds or waits for it; the
last one out removes it, so the registry does not grow with every
booking and email the process has seen.
"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterator


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # Threads holding or waiting on ``lock``.
        self.users = 0


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _hold_one(self, key: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Acquire the locks for ``keys`` in the order given."""
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self._hold_one(key))
            yield

    def is_held(self, key: str) -> bool:
        with self._registry_lock:
            entry = self._locks.get(key)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        """Keys currently held or waited on."""
        with self._registry_lock:
            return len(self._locks)


def booking_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


def access_request_key(request_id: str) -> str:
    return f"access_request:{request_id}"


def email_key(email: str) -> str:
    return f"email:{email}"
