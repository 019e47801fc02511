"""
Per-key mutual exclusion for the in-memory stores.

Each trigger condition and each alert gets its own lock, so mutations to one
id are serialised while different ids proceed independently. Critical
sections never await, which makes plain threading locks safe to take from
both event-loop code and worker threads.
"""

from __future__ import annotations

import threading
from typing import Dict


class KeyedLock:
    """Lazily-created lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def __call__(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard(self, key: str) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
