"""The four vendor adapters: fixed resilience policies layered over a VendorPort.

| Vendor   | Timeout | Attempts | Backoff  | Fallback                                   |
|----------|---------|----------|----------|--------------------------------------------|
| fraud    | 4s      | 3        | 1s x2    | score 0.5, REVIEW                          |
| tax      | 2s      | 3        | 1s x2    | flat 8% of amount                          |
| shipping | 3s      | 2        | 500ms x2 | $9.99, tracking PENDING                    |
| payment  | 5s      | 3        | 1s x2    | PENDING, transaction PENDING-<order id>    |

A fraud DECLINE and a payment FAILED are business answers: they come back
as ``Rejected`` and do not count against the vendor's circuit. A fraud
fallback is never a decline; degraded fraud scoring lets the order through
for review.
"""

import asyncio
import dataclasses
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from orchestration.resilience.call import ResilientCall, VendorPolicy
from orchestration.resilience.circuit_breaker import CircuitBreaker, CircuitConfig
from orchestration.resilience.retry import RetryPolicy
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

FALLBACK_TAX_RATE = Decimal("0.08")
FALLBACK_SHIPPING_COST = Decimal("9.99")

VENDOR_CIRCUIT = CircuitConfig(
    window_size=10,
    failure_rate_threshold=0.5,
    cooldown_seconds=30.0,
    half_open_max_calls=3,
    success_threshold=3,
)


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------
def fraud_fallback(request: FraudRequest) -> FraudResponse:
    # Medium risk: let the order through, flagged for manual review
    return FraudResponse(
        score=0.5,
        recommendation=FraudRecommendation.REVIEW,
        risk_level="MEDIUM",
        check_id=f"FALLBACK-{request.order_id}",
    )


def tax_fallback(request: TaxRequest) -> TaxResponse:
    tax_amount = (Decimal(request.amount) * FALLBACK_TAX_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return TaxResponse(tax_amount=tax_amount, tax_rate=FALLBACK_TAX_RATE, jurisdiction="DEFAULT")


def shipping_fallback(_request: ShippingRequest) -> ShippingResponse:
    return ShippingResponse(
        cost=FALLBACK_SHIPPING_COST,
        tracking_number="PENDING",
        estimated_days=5,
        carrier="STANDARD",
    )


def payment_fallback(request: PaymentRequest) -> PaymentResponse:
    return PaymentResponse(
        transaction_id=f"PENDING-{request.order_id}",
        status=PaymentState.PENDING,
        message="Payment queued for retry - vendor temporarily unavailable",
    )


# ---------------------------------------------------------------------------
# Rejection classifiers
# ---------------------------------------------------------------------------
def fraud_rejects(response: FraudResponse) -> str | None:
    if response.recommendation == FraudRecommendation.DECLINE:
        return FraudRecommendation.DECLINE
    return None


def payment_rejects(response: PaymentResponse) -> str | None:
    if response.status == PaymentState.FAILED:
        return response.message or PaymentState.FAILED
    return None


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
def default_policies() -> dict[str, VendorPolicy]:
    return {
        "fraud": VendorPolicy(
            timeout=4.0,
            retry=RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0),
            circuit=VENDOR_CIRCUIT,
            fallback=fraud_fallback,
            rejects=fraud_rejects,
            rejection_counts_as_failure=False,
            fallback_on_rejection=True,
        ),
        "tax": VendorPolicy(
            timeout=2.0,
            retry=RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0),
            circuit=VENDOR_CIRCUIT,
            fallback=tax_fallback,
            rejection_counts_as_failure=True,
            fallback_on_rejection=True,
        ),
        "shipping": VendorPolicy(
            timeout=3.0,
            retry=RetryPolicy(max_attempts=2, base_delay=0.5, multiplier=2.0),
            circuit=VENDOR_CIRCUIT,
            fallback=shipping_fallback,
            rejection_counts_as_failure=True,
            fallback_on_rejection=True,
        ),
        "payment": VendorPolicy(
            timeout=5.0,
            retry=RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0),
            circuit=VENDOR_CIRCUIT,
            fallback=payment_fallback,
            rejects=payment_rejects,
            rejection_counts_as_failure=False,
            fallback_on_rejection=False,
        ),
    }


@dataclass
class VendorAdapters:
    fraud: ResilientCall
    tax: ResilientCall
    shipping: ResilientCall
    payment: ResilientCall

    @classmethod
    def build(
        cls,
        vendors: VendorPort,
        overrides: dict[str, dict] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> "VendorAdapters":
        """Wrap each vendor operation in its resilient call.

        ``overrides`` maps a vendor name to ``VendorPolicy`` field replacements,
        e.g. ``{"payment": {"timeout": 0.05}}``.
        """
        policies = default_policies()
        for vendor, changes in (overrides or {}).items():
            if vendor not in policies:
                raise ValueError(f"Unknown vendor: {vendor}")
            policies[vendor] = dataclasses.replace(policies[vendor], **changes)

        operations = {
            "fraud": vendors.check_fraud,
            "tax": vendors.calculate_tax,
            "shipping": vendors.calculate_shipping,
            "payment": vendors.process_payment,
        }
        calls = {
            vendor: ResilientCall(
                vendor,
                operations[vendor],
                policy,
                breaker=CircuitBreaker(vendor, policy.circuit, clock=clock),
                sleep=sleep,
                rng=rng,
            )
            for vendor, policy in policies.items()
        }
        return cls(**calls)

    def __iter__(self):
        return iter((self.fraud, self.tax, self.shipping, self.payment))

    def get(self, vendor: str) -> ResilientCall:
        if vendor not in ("fraud", "tax", "shipping", "payment"):
            raise ValueError(f"Unknown vendor: {vendor}")
        return getattr(self, vendor)

    def health(self) -> dict[str, dict]:
        return {call.vendor: call.breaker.stats for call in self}
