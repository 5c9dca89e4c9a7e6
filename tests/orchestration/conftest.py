import random
from decimal import Decimal

import pytest
from orchestration.callbacks.correlator import CallbackCorrelator, CallbackRegistry
from orchestration.order.order import Order, ShippingAddress
from orchestration.order.store import InMemoryOrderStore
from orchestration.orchestrator.orchestrator import Orchestrator
from orchestration.orchestrator.ownership import OrderLocks
from orchestration.vendors.adapters import VendorAdapters
from orchestration.vendors.fake_adapter import FakeVendors

CALLBACK_URL = "http://localhost:8000/webhooks/payment"

NY_ADDRESS = ShippingAddress(
    street="123 Main St",
    city="New York",
    state="NY",
    zip_code="10001",
    country="USA",
)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep between retries; remembers every delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sleeper():
    return RecordingSleep()


@pytest.fixture()
def fake_vendors():
    return FakeVendors()


@pytest.fixture()
def store():
    return InMemoryOrderStore()


@pytest.fixture()
def registry():
    return CallbackRegistry()


@pytest.fixture()
def locks():
    return OrderLocks()


@pytest.fixture()
def adapters(fake_vendors, sleeper, clock):
    return VendorAdapters.build(fake_vendors, sleep=sleeper, clock=clock, rng=random.Random(7))


@pytest.fixture()
def orchestrator(store, adapters, registry, locks):
    return Orchestrator(store=store, adapters=adapters, registry=registry, locks=locks, callback_url=CALLBACK_URL)


@pytest.fixture()
def correlator(store, registry, locks):
    return CallbackCorrelator(store, registry, locks)


@pytest.fixture()
def place_order(store):
    """Persist a CREATED order and return it."""

    def _place(amount="1999.99", customer_id="cust-001", address=NY_ADDRESS, **kwargs) -> Order:
        order = Order(customer_id=customer_id, amount=Decimal(amount), shipping_address=address, **kwargs)
        store.save(order)
        return order

    return _place


@pytest.fixture()
def trip_circuit():
    """Drive a breaker OPEN by reporting a window full of failures."""

    def _trip(breaker, failures: int | None = None) -> None:
        for _ in range(failures or breaker.config.effective_minimum_calls):
            permit = breaker.acquire()
            if permit is None:
                return
            breaker.record_failure(permit)

    return _trip
