"""Callback correlator: applies asynchronous vendor verdicts to in-flight orders.

When payment answers PENDING, the orchestrator registers a ``PendingCallback``
keyed by (order id, vendor). The vendor later calls back with the final
status; ``resolve`` matches it to the order and applies the terminal
transition exactly once. The registration is discarded as soon as its order
is terminal, so the registry only ever holds orders still awaiting a verdict.

Outcomes of ``resolve``:
    APPLIED        - the order moved to PAYMENT_COMPLETED / PAYMENT_FAILED
    DROPPED        - no pending callback (including a repeat of one already
                     applied), or the order is not in PAYMENT_PENDING
    STILL_PENDING  - the vendor reported PENDING again; nothing to apply

A callback for an order that has not reached payment yet raises
``CallbackNotReady`` so the transport redelivers it later.
"""

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog

from orchestration.exceptions import CallbackNotReady, OrderNotFoundError, ValidationError
from orchestration.order.order import OrderStatus
from orchestration.order.store import OrderStore
from orchestration.orchestrator.ownership import OrderLocks
from orchestration.vendors.port import PaymentState

logger = structlog.get_logger(__name__)

PAYMENT_VENDOR = "payment"

_AWAITING_PAYMENT = {OrderStatus.CREATED.value, OrderStatus.FRAUD_CHECK_PASSED.value}


class CallbackOutcome(Enum):
    APPLIED = "applied"
    DROPPED = "dropped"
    STILL_PENDING = "still_pending"


@dataclass
class PendingCallback:
    order_id: str
    vendor: str
    transaction_id: str | None = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed: bool = False
    completed_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.order_id, self.vendor)


class CallbackRegistry:
    """In-memory table of pending callbacks with an atomic single-use claim."""

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], PendingCallback] = {}
        self._lock = threading.Lock()

    def register(self, order_id: str, vendor: str, transaction_id: str | None = None) -> PendingCallback:
        with self._lock:
            existing = self._pending.get((order_id, vendor))
            if existing is not None and not existing.completed:
                existing.transaction_id = transaction_id or existing.transaction_id
                return existing
            pending = PendingCallback(order_id=order_id, vendor=vendor, transaction_id=transaction_id)
            self._pending[pending.key] = pending
            return pending

    def get(self, order_id: str, vendor: str) -> PendingCallback | None:
        with self._lock:
            return self._pending.get((order_id, vendor))

    def claim(self, order_id: str, vendor: str) -> PendingCallback | None:
        """Flip the completion flag. Returns the callback only to the first claimant."""
        with self._lock:
            pending = self._pending.get((order_id, vendor))
            if pending is None or pending.completed:
                return None
            pending.completed = True
            pending.completed_at = datetime.now(UTC)
            return pending

    def release(self, order_id: str, vendor: str) -> None:
        """Undo a claim whose transition could not be persisted."""
        with self._lock:
            pending = self._pending.get((order_id, vendor))
            if pending is not None:
                pending.completed = False
                pending.completed_at = None

    def discard(self, order_id: str, vendor: str) -> None:
        with self._lock:
            self._pending.pop((order_id, vendor), None)

    def outstanding(self) -> list[PendingCallback]:
        with self._lock:
            return [pending for pending in self._pending.values() if not pending.completed]

    def __len__(self) -> int:
        return len(self._pending)


class CallbackCorrelator:
    def __init__(self, store: OrderStore, registry: CallbackRegistry, locks: OrderLocks) -> None:
        self.store = store
        self.registry = registry
        self.locks = locks

    def recover(self) -> int:
        """Re-register callbacks for orders persisted in PAYMENT_PENDING.

        The registry lives in memory; after a restart this rebuilds it from the
        store so late vendor callbacks still find their order.
        """
        recovered = 0
        for order in self.store.find_by_status(OrderStatus.PAYMENT_PENDING):
            if self.registry.get(order.id, PAYMENT_VENDOR) is None:
                self.registry.register(order.id, PAYMENT_VENDOR, order.payment_transaction_id)
                recovered += 1
        if recovered:
            logger.info("Pending payment callbacks recovered", count=recovered)
        return recovered

    async def resolve(self, order_id: str, transaction_id: str, status: str) -> CallbackOutcome:
        status = (status or "").upper()
        if status not in PaymentState.ALL:
            raise ValidationError({"status": [f"Unknown payment status: {status or '<empty>'}"]})

        async with self.locks.hold(order_id):
            log = logger.bind(order_id=order_id, transaction_id=transaction_id, status=status)

            if status == PaymentState.PENDING:
                log.info("Payment callback still pending")
                return CallbackOutcome.STILL_PENDING

            if self.registry.get(order_id, PAYMENT_VENDOR) is None:
                return self._unmatched(order_id, log)

            order = self.store.load(order_id)
            if order.status != OrderStatus.PAYMENT_PENDING.value:
                if order.is_closed:
                    self.registry.discard(order_id, PAYMENT_VENDOR)
                log.warning("Payment callback dropped", order_status=order.status)
                return CallbackOutcome.DROPPED

            if self.registry.claim(order_id, PAYMENT_VENDOR) is None:
                log.info("Payment callback already claimed")
                return CallbackOutcome.DROPPED

            try:
                if status == PaymentState.SUCCESS:
                    order.record_payment_success(transaction_id)
                else:
                    order.record_payment_failure(transaction_id, "declined by payment vendor callback")
                self.store.save(order)
            except Exception:
                self.registry.release(order_id, PAYMENT_VENDOR)
                raise
            self.registry.discard(order_id, PAYMENT_VENDOR)

            log.info("Payment callback applied", order_status=order.status)
            return CallbackOutcome.APPLIED

    def _unmatched(self, order_id: str, log) -> CallbackOutcome:
        try:
            order = self.store.load(order_id)
        except OrderNotFoundError:
            log.warning("Payment callback for unknown order dropped")
            return CallbackOutcome.DROPPED

        if order.status in _AWAITING_PAYMENT:
            log.info("Payment callback arrived before payment was recorded", order_status=order.status)
            raise CallbackNotReady(order_id, order.status)

        log.warning("Payment callback without pending registration dropped", order_status=order.status)
        return CallbackOutcome.DROPPED
