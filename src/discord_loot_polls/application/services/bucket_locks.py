"""Per-bucket serialization of vote writes.

Two tasks that read "capacity available" before either writes would push a
bucket past its capacity. Every mutating path acquires the lock for
``(guild_id, context, bucket_key)`` and re-reads the snapshot while holding it.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from ...domain.polls.value_objects import VotingContext

BucketLockKey = tuple[int, VotingContext, str]


class BucketLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[BucketLockKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, guild_id: int, context: VotingContext, bucket_key: str) -> asyncio.Lock:
        return self._locks[(guild_id, context, bucket_key)]

    @asynccontextmanager
    async def hold(
        self, guild_id: int, context: VotingContext, bucket_keys: Iterable[str]
    ) -> AsyncIterator[None]:
        """Acquire several bucket locks in a stable order to avoid deadlocks."""
        locks = [self.lock_for(guild_id, context, key) for key in sorted(set(bucket_keys))]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def __len__(self) -> int:
        return len(self._locks)
