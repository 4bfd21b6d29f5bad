"""Per-user serialization for read-merge-write upserts."""

from __future__ import annotations

import asyncio


class UserLockRegistry:
    """Hands out one ``asyncio.Lock`` per user id.

    Upserts that read a row, merge in memory and write the full row back run
    under the user's lock so two overlapping calls for the same user inside
    this process cannot lose an update.  Different users never block each
    other.

    Usage::

        locks = UserLockRegistry()
        async with locks.lock_for(user_id):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
