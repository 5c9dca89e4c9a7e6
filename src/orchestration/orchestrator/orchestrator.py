"""Orchestrator: drives one order through fraud, tax + shipping, and payment.

    CREATED ──fraud──► FRAUD_CHECK_PASSED ──tax ‖ shipping──► (totals) ──payment──►
        PAYMENT_COMPLETED | PAYMENT_FAILED | PAYMENT_PENDING (awaits callback)
    CREATED ──fraud DECLINE──► FRAUD_CHECK_FAILED

Every step persists before the next one starts, so a run always resumes from
the last saved state. Orders already in PAYMENT_PENDING or in a terminal
state are left alone; the ingress may deliver the same id more than once.

Vendor trouble never reaches this module: the resilient calls hand back a
``Success``, ``FallbackUsed`` or ``Rejected``. Anything that does raise here
is an internal fault, and the order is cancelled.
"""

import asyncio
from dataclasses import dataclass

import structlog

from orchestration.callbacks.correlator import PAYMENT_VENDOR, CallbackRegistry
from orchestration.exceptions import OrderNotFoundError, ValidationError
from orchestration.order.order import Order, OrderStatus, ShippingAddress
from orchestration.order.store import OrderStore
from orchestration.orchestrator.ownership import OrderLocks
from orchestration.resilience.results import VendorCallResult
from orchestration.vendors.adapters import VendorAdapters
from orchestration.vendors.port import (
    WAREHOUSE_ADDRESS,
    FraudRequest,
    FraudResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentState,
    ShippingRequest,
    ShippingResponse,
    TaxRequest,
    TaxResponse,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrchestrationResult:
    order_id: str
    status: str | None
    skipped: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Orchestrator:
    def __init__(
        self,
        store: OrderStore,
        adapters: VendorAdapters,
        registry: CallbackRegistry,
        locks: OrderLocks,
        callback_url: str,
        origin: ShippingAddress = WAREHOUSE_ADDRESS,
    ) -> None:
        self.store = store
        self.adapters = adapters
        self.registry = registry
        self.locks = locks
        self.callback_url = callback_url
        self.origin = origin

    async def process(self, order_id: str) -> OrchestrationResult:
        """Advance the order as far as its vendors allow. Never raises for order faults."""
        async with self.locks.hold(order_id):
            with structlog.contextvars.bound_contextvars(order_id=order_id):
                return await self._run(order_id)

    async def _run(self, order_id: str) -> OrchestrationResult:
        try:
            order = self.store.load(order_id)
        except OrderNotFoundError as exc:
            logger.warning("Order not found for orchestration")
            return OrchestrationResult(order_id=order_id, status=None, error=str(exc))

        if order.is_closed or order.status == OrderStatus.PAYMENT_PENDING.value:
            logger.info("Order already settled, skipping", status=order.status)
            return OrchestrationResult(order_id=order_id, status=order.status, skipped=True)

        try:
            await self._advance(order)
        except Exception as exc:
            logger.exception("Orchestration failed, cancelling order", error=str(exc))
            status = self._cancel(order_id, exc)
            return OrchestrationResult(order_id=order_id, status=status, error=str(exc))

        logger.info("Orchestration run finished", status=order.status)
        return OrchestrationResult(order_id=order_id, status=order.status)

    async def _advance(self, order: Order) -> None:
        if order.status == OrderStatus.CREATED.value:
            cleared = await self._check_fraud(order)
            if not cleared:
                return
        if not order.has_totals:
            await self._calculate_charges(order)
        await self._take_payment(order)

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    async def _check_fraud(self, order: Order) -> bool:
        result = await self.adapters.fraud.call(
            FraudRequest(order_id=order.id, customer_id=order.customer_id, amount=order.amount)
        )
        fraud = result.payload

        if result.rejected:
            order.record_fraud_decline(fraud.score if fraud is not None else None, result.reason)
            self.store.save(order)
            logger.info("Fraud check declined", score=order.fraud_score)
            return False

        fraud = _expect(result, FraudResponse)
        if not 0.0 <= fraud.score <= 1.0:
            raise ValidationError({"fraud_score": [f"Score out of range: {fraud.score}"]})
        order.record_fraud_clearance(fraud.score, fraud.recommendation, degraded=result.used_fallback)
        self.store.save(order)
        logger.info(
            "Fraud check passed",
            score=fraud.score,
            recommendation=fraud.recommendation,
            degraded=result.used_fallback,
        )
        return True

    async def _calculate_charges(self, order: Order) -> None:
        tax_result, shipping_result = await asyncio.gather(
            self.adapters.tax.call(
                TaxRequest(order_id=order.id, amount=order.amount, destination=order.shipping_address)
            ),
            self.adapters.shipping.call(
                ShippingRequest(order_id=order.id, origin=self.origin, destination=order.shipping_address)
            ),
        )
        tax = _expect(tax_result, TaxResponse)
        shipping = _expect(shipping_result, ShippingResponse)

        degraded = tuple(result.vendor for result in (tax_result, shipping_result) if result.used_fallback)
        order.record_charges(
            tax_amount=tax.tax_amount,
            tax_rate=tax.tax_rate,
            shipping_cost=shipping.cost,
            tracking_number=shipping.tracking_number,
            estimated_days=shipping.estimated_days,
            degraded_vendors=degraded,
        )
        self.store.save(order)
        logger.info(
            "Tax and shipping recorded",
            tax_amount=str(order.tax_amount),
            shipping_cost=str(order.shipping_cost),
            total_amount=str(order.total_amount),
            degraded=list(degraded),
        )

    async def _take_payment(self, order: Order) -> None:
        result = await self.adapters.payment.call(
            PaymentRequest(
                order_id=order.id,
                amount=order.total_amount,
                currency=order.currency,
                callback_url=self.callback_url,
            )
        )
        payment = result.payload

        if result.rejected:
            transaction_id = payment.transaction_id if payment is not None else None
            order.record_payment_failure(transaction_id, result.reason)
            self.store.save(order)
            logger.info("Payment failed", reason=result.reason)
            return

        payment = _expect(result, PaymentResponse)
        if payment.status == PaymentState.SUCCESS:
            order.record_payment_success(payment.transaction_id)
            self.store.save(order)
            logger.info("Payment completed", transaction_id=payment.transaction_id)
        elif payment.status == PaymentState.PENDING:
            order.record_payment_pending(payment.transaction_id, degraded=result.used_fallback)
            self.store.save(order)
            # Registered only once PENDING is persisted; the callback takes the same lock
            self.registry.register(order.id, PAYMENT_VENDOR, payment.transaction_id)
            logger.info(
                "Payment pending, awaiting callback",
                transaction_id=payment.transaction_id,
                degraded=result.used_fallback,
            )
        else:
            raise ValidationError({"payment_status": [f"Unknown payment status: {payment.status}"]})

    # -------------------------------------------------------------------
    # Internal faults
    # -------------------------------------------------------------------
    def _cancel(self, order_id: str, error: Exception) -> str | None:
        """Cancel from the last persisted state. Best effort: a broken store is only logged."""
        try:
            order = self.store.load(order_id)
            if order.is_closed:
                return order.status
            order.cancel(f"Orchestration error: {error}")
            self.store.save(order)
        except Exception:
            logger.exception("Could not cancel order after orchestration failure")
            return None
        logger.warning("Order cancelled", reason=order.failure_reason)
        return order.status


def _expect(result: VendorCallResult, payload_type: type):
    """Unwrap an accepted vendor payload, refusing anything of the wrong shape."""
    if result.rejected:
        raise ValidationError({result.vendor: [f"Unexpected rejection: {result.reason}"]})
    if not isinstance(result.payload, payload_type):
        raise ValidationError(
            {result.vendor: [f"Invalid vendor payload: expected {payload_type.__name__}, got {result.payload!r}"]}
        )
    return result.payload
