"""Tests for the order ingress queue and per-order ownership."""

import asyncio

import pytest
from orchestration.orchestrator.ingress import OrderIngress
from orchestration.orchestrator.ownership import OrderLocks


class TestOrderIngress:
    async def test_delivers_in_publish_order(self):
        ingress = OrderIngress()
        for order_id in ("ord-1", "ord-2", "ord-3"):
            await ingress.publish(order_id)

        assert [await ingress.get() for _ in range(3)] == ["ord-1", "ord-2", "ord-3"]

    async def test_join_waits_for_acknowledgement(self):
        ingress = OrderIngress()
        ingress.publish_nowait("ord-1")
        await ingress.get()

        join = asyncio.create_task(ingress.join())
        await asyncio.sleep(0)
        assert not join.done()

        ingress.task_done()
        await asyncio.wait_for(join, timeout=1)

    async def test_requeue_redelivers(self):
        ingress = OrderIngress()
        await ingress.requeue("ord-1")
        assert await ingress.get() == "ord-1"

    async def test_delayed_requeue(self):
        ingress = OrderIngress()
        await ingress.requeue("ord-1", delay=0.02)
        assert ingress.qsize() == 0

        assert await asyncio.wait_for(ingress.get(), timeout=1) == "ord-1"

    async def test_aclose_cancels_delayed_redeliveries(self):
        ingress = OrderIngress()
        await ingress.requeue("ord-1", delay=10)

        await ingress.aclose()
        await asyncio.sleep(0.01)

        assert ingress.qsize() == 0

    async def test_async_iteration_is_restartable(self):
        ingress = OrderIngress()
        for order_id in ("ord-1", "ord-2"):
            ingress.publish_nowait(order_id)

        async for order_id in ingress:
            assert order_id == "ord-1"
            break
        async for order_id in ingress:
            assert order_id == "ord-2"
            break


class TestOrderLocks:
    async def test_same_order_is_serialized(self):
        locks = OrderLocks()
        events = []

        async def run(name):
            async with locks.hold("ord-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(run("a"), run("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    async def test_different_orders_do_not_contend(self):
        locks = OrderLocks()
        inside = asyncio.Event()

        async def first():
            async with locks.hold("ord-1"):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def second():
            async with locks.hold("ord-2"):
                inside.set()

        await asyncio.gather(first(), second())

    async def test_entries_are_dropped_when_unused(self):
        locks = OrderLocks()
        async with locks.hold("ord-1"):
            assert locks.is_held("ord-1")
            assert len(locks) == 1

        assert not locks.is_held("ord-1")
        assert len(locks) == 0

    async def test_lock_released_when_body_raises(self):
        locks = OrderLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("ord-1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.hold("ord-1"):
            pass
