"""Engine wiring: builds every collaborator once and owns their lifecycle.

    ingress ──► dispatcher ──► orchestrator ──► vendor adapters ──► store
    payment webhook ──► correlator ──► store

The orchestrator and the correlator share one ``OrderLocks`` table and one
``CallbackRegistry``; circuit breakers live on the adapters and are shared
by every order.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from orchestration.callbacks.correlator import CallbackCorrelator, CallbackRegistry
from orchestration.order.creation import CreateOrder, create_order
from orchestration.order.order import Order, OrderStatus
from orchestration.order.store import InMemoryOrderStore, OrderStore
from orchestration.orchestrator.dispatcher import Dispatcher
from orchestration.orchestrator.ingress import OrderIngress
from orchestration.orchestrator.orchestrator import Orchestrator
from orchestration.orchestrator.ownership import OrderLocks
from orchestration.settings import Settings
from orchestration.vendors import get_vendors
from orchestration.vendors.adapters import VendorAdapters
from orchestration.vendors.port import VendorPort

logger = structlog.get_logger(__name__)

_RESUMABLE_STATES = (OrderStatus.CREATED, OrderStatus.FRAUD_CHECK_PASSED)


@dataclass
class VendorEngine:
    settings: Settings
    store: OrderStore
    vendors: VendorPort
    adapters: VendorAdapters
    locks: OrderLocks
    registry: CallbackRegistry
    correlator: CallbackCorrelator
    orchestrator: Orchestrator
    ingress: OrderIngress
    dispatcher: Dispatcher

    async def start(self) -> None:
        self.correlator.recover()
        resumed = await self._resume_unfinished()
        self.dispatcher.start()
        logger.info(
            "Vendor engine started",
            resumed_orders=resumed,
            environment=self.settings.environment,
            vendor_adapter=self.settings.vendor_adapter,
            pool_size=self.dispatcher.pool_size,
        )

    async def _resume_unfinished(self) -> int:
        """Put orders a previous run left short of payment back on the ingress."""
        resumed = 0
        for status in _RESUMABLE_STATES:
            for order in self.store.find_by_status(status):
                if order.id not in self.ingress:
                    await self.ingress.publish(order.id)
                    resumed += 1
        return resumed

    async def stop(self) -> None:
        await self.dispatcher.stop()
        await self.ingress.aclose()
        await self.vendors.aclose()
        logger.info("Vendor engine stopped")

    async def submit(self, command: CreateOrder) -> Order:
        return await create_order(command, self.store, self.ingress)

    async def drain(self) -> None:
        await self.dispatcher.drain()


def build_engine(
    settings: Settings | None = None,
    vendors: VendorPort | None = None,
    store: OrderStore | None = None,
    overrides: dict[str, dict] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> VendorEngine:
    """Assemble an engine. Anything not passed in comes from settings and defaults."""
    settings = settings or Settings.from_env()
    if vendors is None:
        vendors = get_vendors(settings)
    if store is None:
        store = InMemoryOrderStore()

    adapters = VendorAdapters.build(vendors, overrides=overrides, sleep=sleep, clock=clock)
    locks = OrderLocks()
    registry = CallbackRegistry()
    ingress = OrderIngress()
    orchestrator = Orchestrator(
        store=store,
        adapters=adapters,
        registry=registry,
        locks=locks,
        callback_url=settings.payment_callback_url,
    )
    return VendorEngine(
        settings=settings,
        store=store,
        vendors=vendors,
        adapters=adapters,
        locks=locks,
        registry=registry,
        correlator=CallbackCorrelator(store, registry, locks),
        orchestrator=orchestrator,
        ingress=ingress,
        dispatcher=Dispatcher(orchestrator, ingress, pool_size=settings.worker_pool_size),
    )
