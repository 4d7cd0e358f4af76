"""
Per-key asyncio locks.

Mutations to one slot or one entry are serialized while unrelated keys
proceed in parallel. A key's lock only exists while some task holds or
waits for it, so the registry stays as small as the work in flight.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
    """Registry handing out one ``asyncio.Lock`` per key.

    Use as ``async with keyed_lock(key): ...``.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __call__(self, key: Hashable):
        return self._acquire(key)

    @asynccontextmanager
    async def _acquire(self, key: Hashable) -> AsyncIterator[asyncio.Lock]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield lock
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
