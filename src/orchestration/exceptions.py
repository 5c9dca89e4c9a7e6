"""Exceptions raised by the orchestration domain.

Validation and lookup failures are Protean's own ``ValidationError`` and
``ObjectNotFoundError``, so the HTTP layer renders domain and framework
errors the same way. Vendor-side faults live in
``orchestration.resilience.faults`` and never escape the resilient call
wrapper.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

__all__ = [
    "CallbackNotReady",
    "ObjectNotFoundError",
    "OrchestrationError",
    "OrderNotFoundError",
    "ValidationError",
]


class OrchestrationError(Exception):
    """Base class for orchestration errors that are not Protean's."""


class OrderNotFoundError(ObjectNotFoundError):
    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class CallbackNotReady(OrchestrationError):
    """A vendor callback arrived before the order reached the state it resolves.

    The transport should redeliver it later rather than drop it.
    """

    def __init__(self, order_id: str, status: str) -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is in {status}; callback cannot be resolved yet")
