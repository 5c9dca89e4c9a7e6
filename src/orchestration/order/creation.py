"""Order creation: command and handler.

An order is persisted in CREATED and announced on the ingress. Creation
never waits on a vendor; the dispatcher picks the order up asynchronously.
"""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from orchestration.order.order import Order, ShippingAddress
from orchestration.order.store import OrderStore
from orchestration.orchestrator.ingress import OrderIngress

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreateOrder:
    customer_id: str
    amount: Decimal
    shipping_address: ShippingAddress
    product_id: str | None = None
    quantity: int = 1
    currency: str = "USD"


async def create_order(command: CreateOrder, store: OrderStore, ingress: OrderIngress) -> Order:
    order = Order(
        customer_id=command.customer_id,
        amount=command.amount,
        shipping_address=command.shipping_address,
        product_id=command.product_id,
        quantity=command.quantity,
        currency=command.currency or "USD",
    )
    store.save(order)
    await ingress.publish(order.id)
    logger.info("Order created", order_id=order.id, customer_id=order.customer_id, amount=str(order.amount))
    return order
