"""FastAPI routes for the orchestration engine — orders, webhooks, vendors, simulator."""

from fastapi import APIRouter, Depends, HTTPException, Request

from orchestration.api.schemas import (
    CircuitHealthResponse,
    ConfigureVendorRequest,
    CreateOrderRequest,
    FraudCheckWire,
    OrderResponse,
    PaymentChargeWire,
    PaymentWebhookRequest,
    ShippingRateWire,
    StatusResponse,
    TaxCalculationWire,
    VendorConfigResponse,
)
from orchestration.engine import VendorEngine
from orchestration.exceptions import CallbackNotReady, ObjectNotFoundError, ValidationError
from orchestration.order.creation import CreateOrder
from orchestration.resilience.faults import BusinessRejection, TransientVendorFault
from orchestration.vendors.fake_adapter import VENDORS, FakeVendors
from orchestration.vendors.port import (
    FraudRequest,
    PaymentRequest,
    PaymentState,
    ShippingRequest,
    TaxRequest,
)


def get_engine(request: Request) -> VendorEngine:
    return request.app.state.engine


def get_simulator(request: Request) -> FakeVendors:
    return request.app.state.simulator


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest, engine: VendorEngine = Depends(get_engine)) -> OrderResponse:
    """Place an order. Vendors are called asynchronously after this returns."""
    try:
        command = CreateOrder(
            customer_id=body.customer_id,
            amount=body.amount,
            shipping_address=body.shipping_address.to_address(),
            product_id=body.product_id,
            quantity=body.quantity,
            currency=body.currency,
        )
        order = await engine.submit(command)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    return OrderResponse.from_order(order)


@order_router.get("/customer/{customer_id}", response_model=list[OrderResponse])
async def list_customer_orders(customer_id: str, engine: VendorEngine = Depends(get_engine)) -> list[OrderResponse]:
    return [OrderResponse.from_order(order) for order in engine.store.find_by_customer(customer_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, engine: VendorEngine = Depends(get_engine)) -> OrderResponse:
    try:
        order = engine.store.load(order_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return OrderResponse.from_order(order)


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/payment", response_model=StatusResponse)
async def payment_webhook(body: PaymentWebhookRequest, engine: VendorEngine = Depends(get_engine)) -> StatusResponse:
    """Receive the payment vendor's asynchronous verdict."""
    try:
        outcome = await engine.correlator.resolve(body.order_id, body.transaction_id, body.status)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    except CallbackNotReady as exc:
        # The vendor redelivers on 409
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return StatusResponse(status=outcome.value)


# ---------------------------------------------------------------------------
# Vendor Router
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendors", tags=["vendors"])


@vendor_router.get("/health", response_model=list[CircuitHealthResponse])
async def vendor_health(engine: VendorEngine = Depends(get_engine)) -> list[CircuitHealthResponse]:
    """Circuit state and counters per vendor."""
    return [CircuitHealthResponse(**stats) for stats in engine.adapters.health().values()]


@vendor_router.post("/{vendor}/configure", response_model=VendorConfigResponse)
async def configure_vendor(
    vendor: str,
    body: ConfigureVendorRequest,
    engine: VendorEngine = Depends(get_engine),
) -> VendorConfigResponse:
    """Configure a fake vendor's behavior (non-production only).

    This endpoint is only available when ENVIRONMENT is not 'production'.
    It allows forcing failures, rejections and latency for manual testing.
    """
    if engine.settings.is_production:
        raise HTTPException(status_code=403, detail="Vendor configuration not available in production")

    vendors = engine.vendors
    if not isinstance(vendors, FakeVendors):
        raise HTTPException(status_code=400, detail="Vendor configuration only available for FakeVendors")
    if vendor not in VENDORS:
        raise HTTPException(status_code=404, detail=f"Unknown vendor: {vendor}")
    if body.payment_status is not None and body.payment_status.upper() not in PaymentState.ALL:
        raise HTTPException(status_code=422, detail=f"Unknown payment status: {body.payment_status}")

    behavior = vendors.configure(
        vendor,
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        reject=body.reject,
        reject_reason=body.reject_reason,
        latency=body.latency,
        fail_first=body.fail_first,
    )
    if vendor == "fraud" and body.fraud_score is not None:
        vendors.fraud_score = body.fraud_score
    if vendor == "payment" and body.payment_status is not None:
        vendors.payment_status = body.payment_status.upper()

    return VendorConfigResponse(
        vendor=vendor,
        adapter=type(vendors).__name__,
        should_succeed=behavior.should_succeed,
        reject=behavior.reject,
        latency=behavior.latency,
        fail_first=behavior.fail_first,
    )


# ---------------------------------------------------------------------------
# Vendor Simulator Router
# ---------------------------------------------------------------------------
simulator_router = APIRouter(prefix="/mock-vendor", tags=["simulator"])


async def _simulate(operation, request):
    try:
        return await operation(request)
    except BusinessRejection as exc:
        raise HTTPException(status_code=exc.status_code or 422, detail=exc.reason) from exc
    except TransientVendorFault as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@simulator_router.post("/fraud-api/check")
async def simulate_fraud_check(body: FraudCheckWire, simulator: FakeVendors = Depends(get_simulator)) -> dict:
    request = FraudRequest(order_id=body.order_id, customer_id=body.customer_id, amount=body.amount)
    response = await _simulate(simulator.check_fraud, request)
    return {
        "score": response.score,
        "recommendation": response.recommendation,
        "riskLevel": response.risk_level,
        "checkId": response.check_id,
    }


@simulator_router.post("/tax-api/calculate")
async def simulate_tax(body: TaxCalculationWire, simulator: FakeVendors = Depends(get_simulator)) -> dict:
    request = TaxRequest(order_id=body.order_id, amount=body.amount, destination=body.destination.to_address())
    response = await _simulate(simulator.calculate_tax, request)
    return {
        "taxAmount": str(response.tax_amount),
        "taxRate": str(response.tax_rate),
        "jurisdiction": response.jurisdiction,
    }


@simulator_router.post("/shipping-api/rates")
async def simulate_shipping(body: ShippingRateWire, simulator: FakeVendors = Depends(get_simulator)) -> dict:
    request = ShippingRequest(
        order_id=body.order_id,
        origin=body.origin.to_address(),
        destination=body.destination.to_address(),
        weight=body.weight,
        service_type=body.service_type,
    )
    response = await _simulate(simulator.calculate_shipping, request)
    return {
        "cost": str(response.cost),
        "trackingNumber": response.tracking_number,
        "estimatedDays": response.estimated_days,
        "carrier": response.carrier,
    }


@simulator_router.post("/payment-api/charge")
async def simulate_payment(body: PaymentChargeWire, simulator: FakeVendors = Depends(get_simulator)) -> dict:
    request = PaymentRequest(
        order_id=body.order_id,
        amount=body.amount,
        currency=body.currency,
        callback_url=body.callback_url,
    )
    response = await _simulate(simulator.process_payment, request)
    return {
        "transactionId": response.transaction_id,
        "status": response.status,
        "message": response.message,
    }
