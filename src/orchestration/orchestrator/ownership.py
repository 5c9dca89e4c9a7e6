"""Per-order ownership: a keyed table of asyncio locks.

Orchestration runs and payment callbacks for the same order both go through
``hold(order_id)``, so they never interleave. Different orders never contend.
Entries are reference-counted and dropped once nobody holds or waits on them,
so the table only ever contains orders that are in flight.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class OrderLocks:
    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, order_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(order_id)
        if entry is None:
            entry = self._entries[order_id] = _Entry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[order_id]

    def is_held(self, order_id: str) -> bool:
        entry = self._entries.get(order_id)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
