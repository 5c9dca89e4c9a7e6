"""Dispatcher: a bounded pool of workers draining the order ingress.

Each worker takes one order id at a time and hands it to the orchestrator.
At most ``pool_size`` orders are orchestrated concurrently; the per-order
lock keeps duplicate deliveries of the same id from overlapping.

Every run ends in an ``OrchestrationResult`` delivered to the registered
completion listeners, including runs that blew up inside the worker.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable

import structlog

from orchestration.orchestrator.ingress import OrderIngress
from orchestration.orchestrator.orchestrator import OrchestrationResult, Orchestrator

logger = structlog.get_logger(__name__)

CompletionListener = Callable[[OrchestrationResult], Awaitable[None] | None]


class Dispatcher:
    def __init__(
        self,
        orchestrator: Orchestrator,
        ingress: OrderIngress,
        pool_size: int = 8,
        on_complete: CompletionListener | None = None,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.orchestrator = orchestrator
        self.ingress = ingress
        self.pool_size = pool_size
        self._listeners: list[CompletionListener] = []
        if on_complete is not None:
            self._listeners.append(on_complete)
        self._workers: list[asyncio.Task] = []
        self._active = 0

    @property
    def running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    @property
    def active(self) -> int:
        """Runs currently in progress."""
        return self._active

    def add_listener(self, listener: CompletionListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"orchestration-worker-{index}")
            for index in range(self.pool_size)
        ]
        logger.info("Dispatcher started", pool_size=self.pool_size)

    async def drain(self) -> None:
        """Wait until every order published so far has been processed."""
        await self.ingress.join()

    async def stop(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Dispatcher stopped")

    async def _worker(self, index: int) -> None:
        while True:
            order_id = await self.ingress.get()
            self._active += 1
            try:
                result = await self._process(order_id)
                await self._notify(result)
            finally:
                self._active -= 1
                self.ingress.task_done()

    async def _process(self, order_id: str) -> OrchestrationResult:
        try:
            return await self.orchestrator.process(order_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Worker failed to process order", order_id=order_id)
            return OrchestrationResult(order_id=order_id, status=None, error=str(exc))

    async def _notify(self, result: OrchestrationResult) -> None:
        for listener in self._listeners:
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Completion listener failed", order_id=result.order_id)
