"""Configurable fake vendors for development and testing.

Simulates the four external vendors without any network:
- Fraud scoring: recommendation derived from a configurable score
- Tax: rate by destination state
- Shipping: rate by service type
- Payment: configurable SUCCESS / FAILED / PENDING answer

Each vendor can be told to fail transiently, reject, hang, or fail its
first N calls, making it useful for:
- Exercising circuit breakers and retries in automated tests
- Manual testing via /vendors/{vendor}/configure
- The HTTP vendor simulator served under /mock-vendor
"""

import asyncio
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

from orchestration.resilience.faults import BusinessRejection, TransientVendorFault
from orchestration.vendors.port import (
    FraudRecommendation,
    FraudRequest,
    FraudResponse,
    PaymentRequest,
    PaymentResponse,
    PaymentState,
    ShippingRequest,
    ShippingResponse,
    TaxRequest,
    TaxResponse,
    VendorPort,
)

VENDORS = ("fraud", "tax", "shipping", "payment")

STATE_TAX_RATES = {
    "CA": Decimal("0.0725"),
    "NY": Decimal("0.0800"),
    "TX": Decimal("0.0625"),
    "FL": Decimal("0.0600"),
}
DEFAULT_TAX_RATE = Decimal("0.0700")

SHIPPING_RATES = {
    "STANDARD": (Decimal("9.99"), 5),
    "EXPRESS": (Decimal("24.99"), 2),
    "OVERNIGHT": (Decimal("39.99"), 1),
}


def recommendation_for(score: float) -> tuple[str, str]:
    """Map a fraud score to (risk level, recommendation)."""
    if score < 0.3:
        return "LOW", FraudRecommendation.APPROVE
    if score < 0.7:
        return "MEDIUM", FraudRecommendation.REVIEW
    return "HIGH", FraudRecommendation.DECLINE


@dataclass
class FakeBehavior:
    """How one fake vendor answers."""

    should_succeed: bool = True
    failure_reason: str = "Vendor unavailable"
    reject: bool = False
    reject_reason: str = "Request rejected"
    latency: float = 0.0
    fail_first: int = 0


class FakeVendors(VendorPort):
    """Configurable fake vendor adapter."""

    def __init__(self) -> None:
        self.behaviors: dict[str, FakeBehavior] = {vendor: FakeBehavior() for vendor in VENDORS}
        self.fraud_score: float = 0.15
        self.payment_status: str = PaymentState.SUCCESS
        self.calls: list[dict] = []

    def configure(
        self,
        vendor: str,
        should_succeed: bool = True,
        failure_reason: str = "Vendor unavailable",
        reject: bool = False,
        reject_reason: str = "Request rejected",
        latency: float = 0.0,
        fail_first: int = 0,
    ) -> FakeBehavior:
        """Configure one vendor's behavior at runtime."""
        if vendor not in self.behaviors:
            raise ValueError(f"Unknown vendor: {vendor}")
        behavior = FakeBehavior(
            should_succeed=should_succeed,
            failure_reason=failure_reason,
            reject=reject,
            reject_reason=reject_reason,
            latency=latency,
            fail_first=fail_first,
        )
        self.behaviors[vendor] = behavior
        return behavior

    def calls_for(self, vendor: str) -> list[dict]:
        return [call for call in self.calls if call["vendor"] == vendor]

    async def _simulate(self, vendor: str, request) -> None:
        self.calls.append({"vendor": vendor, "order_id": request.order_id, "request": request})
        behavior = self.behaviors[vendor]
        if behavior.latency:
            await asyncio.sleep(behavior.latency)
        if behavior.fail_first > 0:
            behavior.fail_first -= 1
            raise TransientVendorFault(vendor, behavior.failure_reason)
        if not behavior.should_succeed:
            raise TransientVendorFault(vendor, behavior.failure_reason)
        if behavior.reject:
            raise BusinessRejection(vendor, behavior.reject_reason, status_code=422)

    # -------------------------------------------------------------------
    # Vendor operations
    # -------------------------------------------------------------------
    async def check_fraud(self, request: FraudRequest) -> FraudResponse:
        await self._simulate("fraud", request)
        risk_level, recommendation = recommendation_for(self.fraud_score)
        return FraudResponse(
            score=self.fraud_score,
            recommendation=recommendation,
            risk_level=risk_level,
            check_id=f"FRAUD-{uuid4().hex[:8].upper()}",
        )

    async def calculate_tax(self, request: TaxRequest) -> TaxResponse:
        await self._simulate("tax", request)
        rate = STATE_TAX_RATES.get(request.destination.state, DEFAULT_TAX_RATE)
        tax_amount = (Decimal(request.amount) * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return TaxResponse(tax_amount=tax_amount, tax_rate=rate, jurisdiction=request.destination.state)

    async def calculate_shipping(self, request: ShippingRequest) -> ShippingResponse:
        await self._simulate("shipping", request)
        cost, days = SHIPPING_RATES.get(request.service_type, SHIPPING_RATES["STANDARD"])
        return ShippingResponse(
            cost=cost,
            tracking_number=f"TRACK-{uuid4().hex[:8].upper()}",
            estimated_days=days,
            carrier="MOCK_CARRIER",
        )

    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        await self._simulate("payment", request)
        messages = {
            PaymentState.SUCCESS: "Payment processed successfully",
            PaymentState.FAILED: "Insufficient funds",
            PaymentState.PENDING: "Payment accepted for settlement",
        }
        return PaymentResponse(
            transaction_id=f"txn-{uuid4().hex[:12]}",
            status=self.payment_status,
            message=messages.get(self.payment_status),
        )
