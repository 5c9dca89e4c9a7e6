"""Order aggregate: the record every vendor answer is written into.

State Machine (7 states):
    CREATED → FRAUD_CHECK_PASSED → PAYMENT_PENDING → PAYMENT_COMPLETED
    CREATED → FRAUD_CHECK_FAILED
    FRAUD_CHECK_PASSED → PAYMENT_COMPLETED | PAYMENT_FAILED
    PAYMENT_PENDING → PAYMENT_FAILED
    CANCELLED (from any non-terminal state)

Status only moves forward along ``_VALID_TRANSITIONS``. Terminal states are
absorbing. Money is kept as ``Decimal`` so that the total is exactly
``amount + tax_amount + shipping_cost``.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, List, String, Text, ValueObject
from protean.fields import Decimal as DecimalField

from orchestration.domain import orchestration

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a vendor or API amount to a cent-rounded Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _new_order_id() -> str:
    return f"ord-{uuid4().hex[:12]}"


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    CREATED = "CREATED"
    FRAUD_CHECK_PASSED = "FRAUD_CHECK_PASSED"
    FRAUD_CHECK_FAILED = "FRAUD_CHECK_FAILED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CANCELLED = "CANCELLED"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.CREATED: {
        OrderStatus.FRAUD_CHECK_PASSED,
        OrderStatus.FRAUD_CHECK_FAILED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.FRAUD_CHECK_PASSED: {
        OrderStatus.PAYMENT_PENDING,
        OrderStatus.PAYMENT_COMPLETED,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PAYMENT_PENDING: {
        OrderStatus.PAYMENT_COMPLETED,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.FRAUD_CHECK_FAILED: set(),  # Terminal
    OrderStatus.PAYMENT_COMPLETED: set(),  # Terminal
    OrderStatus.PAYMENT_FAILED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATES = frozenset(status for status, targets in _VALID_TRANSITIONS.items() if not targets)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orchestration.value_object(part_of="Order")
class ShippingAddress:
    """A delivery address captured when the order is placed."""

    street: String(required=True, max_length=255)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    zip_code: String(required=True, max_length=20)
    country: String(required=True, max_length=100)

    def as_vendor_payload(self) -> dict:
        """The address as vendors and API clients spell it."""
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "country": self.country,
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@orchestration.aggregate
class Order:
    """A customer purchase and the answers of the four vendors that process it.

    Status is stored as the ``OrderStatus`` value. Vendor fields stay empty
    until the matching step records them.
    """

    id: Identifier(identifier=True, default=_new_order_id)
    customer_id: String(required=True, max_length=255)
    product_id: String(max_length=255)
    quantity: Integer(min_value=1, default=1)
    amount: DecimalField(required=True)
    currency: String(max_length=3, default="USD")
    shipping_address: ValueObject(ShippingAddress, required=True)
    status: String(choices=OrderStatus, default=OrderStatus.CREATED.value)

    fraud_score: Float()
    fraud_recommendation: String(max_length=50)
    tax_amount: DecimalField()
    tax_rate: DecimalField()
    shipping_cost: DecimalField()
    shipping_tracking_number: String(max_length=100)
    estimated_days: Integer()
    total_amount: DecimalField()
    payment_transaction_id: String(max_length=255)
    payment_status: String(max_length=20)
    failure_reason: Text()
    degraded_vendors: List(content_type=String(max_length=20))

    created_at: DateTime(default=_utc_now)
    updated_at: DateTime(default=_utc_now)

    def defaults(self):
        if self.amount is not None:
            self.amount = to_money(self.amount)

    @invariant.post
    def amount_must_be_positive(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": ["Amount must be greater than zero"]})

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def is_closed(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATES

    @property
    def has_totals(self) -> bool:
        return self.total_amount is not None

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        """Validate that the current state allows transition to target."""
        if not can_transition(OrderStatus(self.status), target_status):
            raise ValidationError({"status": [f"Cannot transition from {self.status} to {target_status.value}"]})

    def _move_to(self, target_status: OrderStatus) -> None:
        self._assert_can_transition(target_status)
        self.status = target_status.value
        self._touch()

    def _touch(self) -> None:
        self.updated_at = _utc_now()

    def _mark_degraded(self, vendor: str) -> None:
        if vendor not in self.degraded_vendors:
            # Assign a new list so the change is tracked
            self.degraded_vendors = [*self.degraded_vendors, vendor]

    # -------------------------------------------------------------------
    # Fraud check
    # -------------------------------------------------------------------
    def record_fraud_clearance(self, score: float, recommendation: str, degraded: bool = False) -> None:
        """Fraud vendor (or its fallback) let the order through."""
        self._move_to(OrderStatus.FRAUD_CHECK_PASSED)
        self.fraud_score = score
        self.fraud_recommendation = recommendation
        if degraded:
            self._mark_degraded("fraud")

    def record_fraud_decline(self, score: float | None, reason: str) -> None:
        """Fraud vendor explicitly declined the order."""
        self._move_to(OrderStatus.FRAUD_CHECK_FAILED)
        self.fraud_score = score
        self.fraud_recommendation = reason
        self.failure_reason = f"Fraud check declined: {reason}"

    # -------------------------------------------------------------------
    # Tax + shipping
    # -------------------------------------------------------------------
    def record_charges(
        self,
        tax_amount,
        tax_rate,
        shipping_cost,
        tracking_number: str | None = None,
        estimated_days: int | None = None,
        degraded_vendors: tuple[str, ...] = (),
    ) -> None:
        """Record tax and shipping together and derive the total.

        Both answers must be in hand: the total never exists without them.
        """
        if self.status != OrderStatus.FRAUD_CHECK_PASSED.value:
            raise ValidationError({"status": [f"Charges cannot be recorded in {self.status}"]})
        if tax_amount is None or shipping_cost is None:
            raise ValidationError({"total_amount": ["Tax and shipping must both be resolved"]})

        self.tax_amount = to_money(tax_amount)
        self.tax_rate = Decimal(str(tax_rate)) if tax_rate is not None else None
        self.shipping_cost = to_money(shipping_cost)
        self.shipping_tracking_number = tracking_number
        self.estimated_days = estimated_days
        self.total_amount = self.amount + self.tax_amount + self.shipping_cost
        for vendor in degraded_vendors:
            self._mark_degraded(vendor)
        self._touch()

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def _assert_payable(self) -> None:
        if not self.has_totals:
            raise ValidationError({"total_amount": ["Payment requires a computed total"]})

    def record_payment_success(self, transaction_id: str) -> None:
        self._assert_payable()
        self._move_to(OrderStatus.PAYMENT_COMPLETED)
        self.payment_transaction_id = transaction_id
        self.payment_status = "SUCCESS"

    def record_payment_pending(self, transaction_id: str, degraded: bool = False) -> None:
        """Payment accepted for asynchronous settlement; a callback will resolve it."""
        self._assert_payable()
        self._move_to(OrderStatus.PAYMENT_PENDING)
        self.payment_transaction_id = transaction_id
        self.payment_status = "PENDING"
        if degraded:
            self._mark_degraded("payment")

    def record_payment_failure(self, transaction_id: str | None, reason: str) -> None:
        self._assert_payable()
        self._move_to(OrderStatus.PAYMENT_FAILED)
        if transaction_id:
            self.payment_transaction_id = transaction_id
        self.payment_status = "FAILED"
        self.failure_reason = f"Payment failed: {reason}"

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason: str) -> None:
        """Abort the order after an internal fault. Vendor fields are kept as-is."""
        self._move_to(OrderStatus.CANCELLED)
        self.failure_reason = reason
