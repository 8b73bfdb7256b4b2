"""Per-record single-writer locks."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable

from ..errors import StoreUnavailableError


class RecordLocks:
    """An asyncio.Lock per record id, dropped once nobody holds or waits on it.

    A block that fails with a timed-out store call keeps its lock until the
    abandoned call finishes, so a late write cannot land after the next
    holder's write.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._leave(key)
            raise

        pending = None
        try:
            yield
        except StoreUnavailableError as exc:
            pending = exc.pending
            raise
        finally:
            if pending is not None and not pending.done():
                pending.add_done_callback(lambda _call: self._release(key, lock))
            else:
                self._release(key, lock)

    def _release(self, key: Hashable, lock: asyncio.Lock) -> None:
        lock.release()
        self._leave(key)

    def _leave(self, key: Hashable) -> None:
        self._users[key] -= 1
        if self._users[key] == 0:
            del self._users[key]
            del self._locks[key]
