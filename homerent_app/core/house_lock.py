import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLockRegistry:
    """Serializes writers per key inside one process.

    Cross-process safety comes from the database: the partial unique index
    on ``bookings(house_id)`` and the row locks taken by the repos. The
    registry keeps same-process requests from racing each other into them.
    """

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[uuid.UUID, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: uuid.UUID):
        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                self._waiters.pop(key, None)
                self._locks.pop(key, None)

    def is_held(self, key: uuid.UUID) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())


# Acquire tenant_locks before house_locks when both are needed.
tenant_locks = KeyedLockRegistry("tenant")
house_locks = KeyedLockRegistry("house")
