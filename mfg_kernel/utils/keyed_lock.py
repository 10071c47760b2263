"""
Per-key in-process locks.

A KeyedLockRegistry hands out one lock per key (a container id) so that
read-modify-write sequences on the same key are serialized inside a
process, while different keys never contend.  Lock entries are reference
counted and dropped when the last holder releases them, so the registry
does not grow with the number of containers ever weighed.

This is the in-process layer only.  Across processes the row lock and the
container version compare-and-swap still apply.
"""

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLockRegistry:
    """Registry of reference-counted locks keyed by identity."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable, timeout: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            TimeoutError: if ``timeout`` elapses before the lock is acquired.
        """
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1

        acquired = False
        try:
            acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                raise TimeoutError(f"Timed out waiting for lock on {key!r}")
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._entries[key]

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
