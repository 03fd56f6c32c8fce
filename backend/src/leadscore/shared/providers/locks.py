"""Per-key asyncio locks.

Priority edits and mapping re-syncs for one provider must not interleave;
edits to different providers proceed independently.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """Hands out one ``asyncio.Lock`` per key, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = asyncio.Lock()
            return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        async with lock:
            yield

    def locked(self, key: Hashable) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()
