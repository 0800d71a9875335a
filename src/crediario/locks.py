"""Keyed locks used to serialize work per client and per product."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class LockRegistry:
    """Hand out one :class:`threading.Lock` per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str, *, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for ``key``, waiting at most ``timeout`` seconds.

        Raises:
            TimeoutError: If the lock could not be acquired in time.
        """
        lock = self.get(key)
        acquired = lock.acquire(timeout=timeout) if timeout is not None else lock.acquire()
        if not acquired:
            raise TimeoutError(f"Timed out waiting for lock '{key}'")
        try:
            yield
        finally:
            lock.release()
