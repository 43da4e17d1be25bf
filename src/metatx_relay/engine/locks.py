"""
Per-sender serialization.

Two requests signed by the same sender against the same forwarder nonce
cannot both execute: the second reverts with
``ERC2771ForwarderInvalidSigner``.  Holding a per-sender lock around
execution makes the loser run after the winner is mined, so its failure
shows up in gas estimation and no gas is wasted on it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class SenderLocks:
    """
    Registry of ``asyncio.Lock`` objects keyed by sender address.

    Locks are created on first use and dropped once no coroutine holds or
    waits on them, so the registry does not grow with the number of distinct
    senders seen.

    Args:
        enabled: When False, ``hold()`` does not lock and requests from the
            same sender run concurrently.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, sender: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return

        key = sender.lower()
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, sender: str) -> bool:
        lock = self._locks.get(sender.lower())
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
