"""Vendor ports (abstract interfaces) and their wire contracts.

Each vendor is a pure request → response operation. Adapters implement the
``VendorPort`` for a transport (in-process fake, HTTP); the orchestration
code only ever talks to these types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from orchestration.order.order import ShippingAddress

WAREHOUSE_ADDRESS = ShippingAddress(
    street="1000 Warehouse Blvd",
    city="Los Angeles",
    state="CA",
    zip_code="90001",
    country="USA",
)


class FraudRecommendation:
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    DECLINE = "DECLINE"


class PaymentState:
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"

    ALL = (SUCCESS, FAILED, PENDING)


# ---------------------------------------------------------------------------
# Fraud
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FraudRequest:
    order_id: str
    customer_id: str
    amount: Decimal

    def to_wire(self) -> dict:
        return {"orderId": self.order_id, "customerId": self.customer_id, "amount": str(self.amount)}


@dataclass(frozen=True)
class FraudResponse:
    score: float
    recommendation: str
    risk_level: str | None = None
    check_id: str | None = None

    @classmethod
    def from_wire(cls, data: dict) -> "FraudResponse":
        return cls(
            score=float(data["score"]),
            recommendation=str(data["recommendation"]).upper(),
            risk_level=data.get("riskLevel"),
            check_id=data.get("checkId"),
        )


# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class TaxRequest:
    order_id: str
    amount: Decimal
    destination: ShippingAddress

    def to_wire(self) -> dict:
        return {
            "orderId": self.order_id,
            "amount": str(self.amount),
            "destination": self.destination.as_vendor_payload(),
        }


@dataclass(frozen=True)
class TaxResponse:
    tax_amount: Decimal
    tax_rate: Decimal
    jurisdiction: str | None = None

    @classmethod
    def from_wire(cls, data: dict) -> "TaxResponse":
        return cls(
            tax_amount=Decimal(str(data["taxAmount"])),
            tax_rate=Decimal(str(data["taxRate"])),
            jurisdiction=data.get("jurisdiction"),
        )


# ---------------------------------------------------------------------------
# Shipping
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ShippingRequest:
    order_id: str
    origin: ShippingAddress
    destination: ShippingAddress
    weight: float = 2.5
    service_type: str = "STANDARD"

    def to_wire(self) -> dict:
        return {
            "orderId": self.order_id,
            "origin": self.origin.as_vendor_payload(),
            "destination": self.destination.as_vendor_payload(),
            "weight": self.weight,
            "serviceType": self.service_type,
        }


@dataclass(frozen=True)
class ShippingResponse:
    cost: Decimal
    tracking_number: str
    estimated_days: int
    carrier: str | None = None

    @classmethod
    def from_wire(cls, data: dict) -> "ShippingResponse":
        return cls(
            cost=Decimal(str(data["cost"])),
            tracking_number=str(data["trackingNumber"]),
            estimated_days=int(data["estimatedDays"]),
            carrier=data.get("carrier"),
        )


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PaymentRequest:
    order_id: str
    amount: Decimal
    currency: str
    callback_url: str

    def to_wire(self) -> dict:
        return {
            "orderId": self.order_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "callbackUrl": self.callback_url,
        }


@dataclass(frozen=True)
class PaymentResponse:
    transaction_id: str
    status: str
    message: str | None = None

    @classmethod
    def from_wire(cls, data: dict) -> "PaymentResponse":
        return cls(
            transaction_id=str(data["transactionId"]),
            status=str(data["status"]).upper(),
            message=data.get("message"),
        )


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class VendorPort(ABC):
    """The four vendor operations behind one adapter."""

    @abstractmethod
    async def check_fraud(self, request: FraudRequest) -> FraudResponse:
        """Score the order for fraud risk."""
        ...

    @abstractmethod
    async def calculate_tax(self, request: TaxRequest) -> TaxResponse:
        """Compute tax for the base amount at the destination."""
        ...

    @abstractmethod
    async def calculate_shipping(self, request: ShippingRequest) -> ShippingResponse:
        """Quote shipping from the warehouse to the destination."""
        ...

    @abstractmethod
    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        """Charge the total.

        The vendor may answer PENDING and settle later through the callback URL.
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        return None
