"""Per-user FIFO serialization of exchanges."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class UserLockChain:
    """
    Chains work per key so at most one exchange per user is in flight.

    Each key maps to the tail future of its chain. A new call waits for the
    current tail to settle, then runs. The entry is dropped when a call settles
    only if that call is still the tail, so a queued newer call keeps its slot.
    """

    def __init__(self) -> None:
        self._tails: dict[str, asyncio.Future[None]] = {}

    def pending_keys(self) -> list[str]:
        return list(self._tails)

    def is_busy(self, key: str) -> bool:
        return key in self._tails

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run *work* after every earlier call for *key* has settled."""
        prev = self._tails.get(key)
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._tails[key] = done
        try:
            if prev is not None:
                await asyncio.shield(prev)
            return await work()
        finally:
            if prev is not None and not prev.done():
                # Cancelled while queued: hand over to the successor only once prev settles.
                prev.add_done_callback(lambda _f: self._release(key, done))
            else:
                self._release(key, done)

    def _release(self, key: str, done: asyncio.Future[None]) -> None:
        if not done.done():
            done.set_result(None)
        if self._tails.get(key) is done:
            del self._tails[key]
