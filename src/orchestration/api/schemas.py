"""Pydantic request/response schemas for the orchestration API.

These are external contracts (anti-corruption layer) — separate from the
internal ``CreateOrder`` command and the vendor wire dataclasses. Field
names are accepted in both snake_case and camelCase.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orchestration.order.order import Order, ShippingAddress

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    model_config = _CAMEL

    street: str
    city: str
    state: str
    zip_code: str
    country: str = "USA"

    def to_address(self) -> ShippingAddress:
        return ShippingAddress(
            street=self.street,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
        )


# ---------------------------------------------------------------------------
# Order Request / Response Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "customer_id": "cust-001",
                    "product_id": "prod-001",
                    "quantity": 1,
                    "amount": "1999.99",
                    "currency": "USD",
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "New York",
                        "state": "NY",
                        "zip_code": "10001",
                        "country": "USA",
                    },
                }
            ]
        },
    )

    customer_id: str = Field(min_length=1)
    product_id: str | None = None
    quantity: int = Field(default=1, ge=1)
    amount: Decimal = Field(gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    shipping_address: AddressSchema


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    product_id: str | None = None
    quantity: int
    amount: Decimal
    currency: str
    status: str
    shipping_address: dict
    fraud_score: float | None = None
    fraud_recommendation: str | None = None
    tax_amount: Decimal | None = None
    tax_rate: Decimal | None = None
    shipping_cost: Decimal | None = None
    shipping_tracking_number: str | None = None
    estimated_days: int | None = None
    total_amount: Decimal | None = None
    payment_transaction_id: str | None = None
    payment_status: str | None = None
    failure_reason: str | None = None
    degraded_vendors: list[str] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            product_id=order.product_id,
            quantity=order.quantity,
            amount=order.amount,
            currency=order.currency,
            status=order.status,
            shipping_address=order.shipping_address.as_vendor_payload(),
            fraud_score=order.fraud_score,
            fraud_recommendation=order.fraud_recommendation,
            tax_amount=order.tax_amount,
            tax_rate=order.tax_rate,
            shipping_cost=order.shipping_cost,
            shipping_tracking_number=order.shipping_tracking_number,
            estimated_days=order.estimated_days,
            total_amount=order.total_amount,
            payment_transaction_id=order.payment_transaction_id,
            payment_status=order.payment_status,
            failure_reason=order.failure_reason,
            degraded_vendors=list(order.degraded_vendors),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


# ---------------------------------------------------------------------------
# Webhook Schemas
# ---------------------------------------------------------------------------
class PaymentWebhookRequest(BaseModel):
    model_config = _CAMEL

    order_id: str
    transaction_id: str
    status: str  # SUCCESS, FAILED, PENDING


class StatusResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Vendor Schemas
# ---------------------------------------------------------------------------
class ConfigureVendorRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Vendor unavailable"
    reject: bool = False
    reject_reason: str = "Request rejected"
    latency: float = Field(default=0.0, ge=0)
    fail_first: int = Field(default=0, ge=0)
    fraud_score: float | None = Field(default=None, ge=0, le=1)
    payment_status: str | None = None


class VendorConfigResponse(BaseModel):
    vendor: str
    adapter: str
    should_succeed: bool
    reject: bool
    latency: float
    fail_first: int


class CircuitHealthResponse(BaseModel):
    vendor: str
    state: str
    failure_rate: float
    window: int
    total_successes: int
    total_failures: int
    total_rejections: int
    times_opened: int


# ---------------------------------------------------------------------------
# Vendor simulator wire schemas (camelCase on the wire)
# ---------------------------------------------------------------------------
class FraudCheckWire(BaseModel):
    model_config = _CAMEL

    order_id: str
    customer_id: str
    amount: Decimal


class TaxCalculationWire(BaseModel):
    model_config = _CAMEL

    order_id: str
    amount: Decimal
    destination: AddressSchema


class ShippingRateWire(BaseModel):
    model_config = _CAMEL

    order_id: str
    origin: AddressSchema
    destination: AddressSchema
    weight: float = 2.5
    service_type: str = "STANDARD"


class PaymentChargeWire(BaseModel):
    model_config = _CAMEL

    order_id: str
    amount: Decimal
    currency: str = "USD"
    callback_url: str
