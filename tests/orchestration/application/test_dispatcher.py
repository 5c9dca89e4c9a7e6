"""Tests for the worker pool, order intake and engine lifecycle."""

import asyncio
from decimal import Decimal

import pytest
from orchestration.callbacks.correlator import PAYMENT_VENDOR
from orchestration.engine import build_engine
from orchestration.exceptions import ValidationError
from orchestration.order.creation import CreateOrder, create_order
from orchestration.order.order import OrderStatus, ShippingAddress
from orchestration.order.store import InMemoryOrderStore
from orchestration.orchestrator.dispatcher import Dispatcher
from orchestration.orchestrator.ingress import OrderIngress
from orchestration.orchestrator.orchestrator import OrchestrationResult
from orchestration.settings import Settings
from orchestration.vendors.fake_adapter import FakeVendors

ADDRESS = ShippingAddress(street="500 Market St", city="San Francisco", state="CA", zip_code="94105", country="USA")


class SlowFraudVendors(FakeVendors):
    """Fake vendors whose fraud check takes a moment and counts overlap."""

    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def check_fraud(self, request):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.02)
            return await super().check_fraud(request)
        finally:
            self.in_flight -= 1


class ExplodingOrchestrator:
    """Raises for one order id, succeeds for the rest."""

    def __init__(self, bad_id):
        self.bad_id = bad_id
        self.seen = []

    async def process(self, order_id):
        self.seen.append(order_id)
        if order_id == self.bad_id:
            raise RuntimeError("worker blew up")
        return OrchestrationResult(order_id=order_id, status=OrderStatus.PAYMENT_COMPLETED.value)


async def _no_sleep(_seconds):
    return None


def _command(amount="250.00", customer_id="cust-001") -> CreateOrder:
    return CreateOrder(customer_id=customer_id, amount=Decimal(amount), shipping_address=ADDRESS)


@pytest.fixture()
async def engine_factory():
    engines = []

    def _build(pool_size=4, vendors=None, store=None):
        engine = build_engine(
            settings=Settings(worker_pool_size=pool_size),
            vendors=vendors or FakeVendors(),
            store=store,
            sleep=_no_sleep,
        )
        engines.append(engine)
        return engine

    yield _build

    for engine in engines:
        await engine.stop()


class TestCreateOrder:
    async def test_persists_created_and_publishes(self):
        store = InMemoryOrderStore()
        ingress = OrderIngress()

        order = await create_order(_command(), store, ingress)

        assert store.load(order.id).status == OrderStatus.CREATED.value
        assert ingress.qsize() == 1
        assert await ingress.get() == order.id

    async def test_invalid_order_is_not_published(self):
        store = InMemoryOrderStore()
        ingress = OrderIngress()

        with pytest.raises(ValidationError):
            await create_order(_command(amount="0"), store, ingress)

        assert len(store) == 0
        assert ingress.qsize() == 0


class TestDispatcher:
    async def test_processes_every_submitted_order(self, engine_factory):
        engine = engine_factory(pool_size=4)
        results = []
        engine.dispatcher.add_listener(results.append)
        orders = [await engine.submit(_command(customer_id=f"cust-{i}")) for i in range(12)]

        await engine.start()
        await engine.drain()

        assert len(results) == 12
        assert all(result.ok for result in results)
        for order in orders:
            assert engine.store.load(order.id).status == OrderStatus.PAYMENT_COMPLETED.value

    async def test_concurrency_is_bounded_by_pool_size(self, engine_factory):
        vendors = SlowFraudVendors()
        engine = engine_factory(pool_size=3, vendors=vendors)
        for i in range(10):
            await engine.submit(_command(customer_id=f"cust-{i}"))

        await engine.start()
        await engine.drain()

        assert 1 < vendors.max_in_flight <= 3

    async def test_duplicate_delivery_runs_once(self, engine_factory):
        engine = engine_factory(pool_size=4)
        results = []
        engine.dispatcher.add_listener(results.append)
        order = await engine.submit(_command())
        await engine.ingress.publish(order.id)

        await engine.start()
        await engine.drain()

        assert len(engine.vendors.calls_for("payment")) == 1
        assert sorted(result.skipped for result in results) == [False, True]

    async def test_async_listeners_are_awaited(self, engine_factory):
        engine = engine_factory(pool_size=2)
        seen = []

        async def listener(result):
            await asyncio.sleep(0)
            seen.append(result.order_id)

        engine.dispatcher.add_listener(listener)
        order = await engine.submit(_command())

        await engine.start()
        await engine.drain()

        assert seen == [order.id]

    async def test_worker_survives_a_crashing_run(self):
        ingress = OrderIngress()
        orchestrator = ExplodingOrchestrator(bad_id="ord-bad")
        results = []
        dispatcher = Dispatcher(orchestrator, ingress, pool_size=1, on_complete=results.append)
        for order_id in ("ord-bad", "ord-good"):
            await ingress.publish(order_id)

        dispatcher.start()
        await dispatcher.drain()
        await dispatcher.stop()

        assert orchestrator.seen == ["ord-bad", "ord-good"]
        assert results[0].error == "worker blew up"
        assert results[0].status is None
        assert results[1].ok

    async def test_failing_listener_does_not_stop_the_pool(self):
        ingress = OrderIngress()
        delivered = []

        def broken(_result):
            raise ValueError("listener bug")

        dispatcher = Dispatcher(ExplodingOrchestrator(bad_id=None), ingress, pool_size=1, on_complete=broken)
        dispatcher.add_listener(delivered.append)
        await ingress.publish("ord-1")
        await ingress.publish("ord-2")

        dispatcher.start()
        await dispatcher.drain()
        await dispatcher.stop()

        assert [result.order_id for result in delivered] == ["ord-1", "ord-2"]

    async def test_stop_cancels_idle_workers(self):
        dispatcher = Dispatcher(ExplodingOrchestrator(bad_id=None), OrderIngress(), pool_size=3)
        dispatcher.start()
        assert dispatcher.running

        await dispatcher.stop()

        assert not dispatcher.running
        assert dispatcher.active == 0

    def test_pool_size_must_be_positive(self):
        with pytest.raises(ValueError):
            Dispatcher(ExplodingOrchestrator(bad_id=None), OrderIngress(), pool_size=0)


class TestEngineLifecycle:
    async def test_start_recovers_pending_callbacks(self, engine_factory, place_order):
        store = InMemoryOrderStore()
        order = place_order()
        order.record_fraud_clearance(0.1, "APPROVE")
        order.record_charges(tax_amount="160.00", tax_rate="0.08", shipping_cost="9.99")
        order.record_payment_pending("txn-before-restart")
        store.save(order)
        engine = engine_factory(store=store)

        await engine.start()

        pending = engine.registry.get(order.id, PAYMENT_VENDOR)
        assert pending is not None
        assert pending.transaction_id == "txn-before-restart"

    async def test_callback_url_comes_from_settings(self, engine_factory):
        engine = engine_factory()
        assert engine.orchestrator.callback_url == "http://localhost:8000/webhooks/payment"

    async def test_empty_store_is_used_as_given(self, engine_factory):
        store = InMemoryOrderStore()
        engine = engine_factory(store=store)

        order = await engine.submit(_command())

        assert engine.store is store
        assert store.load(order.id).status == OrderStatus.CREATED.value

    async def test_start_resumes_orders_left_before_payment(self, engine_factory, store, place_order):
        fresh = place_order()
        cleared = place_order(customer_id="cust-cleared")
        cleared.record_fraud_clearance(0.1, "APPROVE")
        store.save(cleared)
        engine = engine_factory(store=store)

        await engine.start()
        await engine.drain()

        assert store.load(fresh.id).status == OrderStatus.PAYMENT_COMPLETED.value
        assert store.load(cleared.id).status == OrderStatus.PAYMENT_COMPLETED.value
        assert len(engine.vendors.calls_for("payment")) == 2

    async def test_start_does_not_republish_queued_orders(self, engine_factory):
        engine = engine_factory()
        results = []
        engine.dispatcher.add_listener(results.append)
        await engine.submit(_command())

        await engine.start()
        await engine.drain()

        assert len(results) == 1
