"""Order ingress: the queue of "order created" notifications.

Delivery is at-least-once. A consumer takes an id with ``get()``, processes
it, and acknowledges with ``task_done()``. Anything that could not be handled
yet goes back with ``requeue()``. Iterating the ingress yields ids lazily and
can be restarted at any time; ids still queued are simply picked up again.
"""

import asyncio
from collections import Counter

import structlog

logger = structlog.get_logger(__name__)


class OrderIngress:
    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._delayed: set[asyncio.Task] = set()
        self._queued: Counter[str] = Counter()

    async def publish(self, order_id: str) -> None:
        await self._queue.put(order_id)
        self._queued[order_id] += 1
        logger.debug("Order published to ingress", order_id=order_id)

    def publish_nowait(self, order_id: str) -> None:
        self._queue.put_nowait(order_id)
        self._queued[order_id] += 1

    async def get(self) -> str:
        order_id = await self._queue.get()
        self._queued[order_id] -= 1
        if self._queued[order_id] <= 0:
            del self._queued[order_id]
        return order_id

    def task_done(self) -> None:
        self._queue.task_done()

    async def requeue(self, order_id: str, delay: float = 0.0) -> None:
        """Deliver ``order_id`` again, optionally after ``delay`` seconds."""
        if delay <= 0:
            await self.publish(order_id)
            return

        async def _later() -> None:
            await asyncio.sleep(delay)
            await self.publish(order_id)

        task = asyncio.create_task(_later())
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def join(self) -> None:
        """Wait until every delivered id has been acknowledged."""
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def __contains__(self, order_id: str) -> bool:
        """Whether ``order_id`` is waiting to be delivered."""
        return self._queued[order_id] > 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        return await self.get()

    async def aclose(self) -> None:
        for task in list(self._delayed):
            task.cancel()
        if self._delayed:
            await asyncio.gather(*self._delayed, return_exceptions=True)
