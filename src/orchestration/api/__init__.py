"""Orchestration API package."""

from orchestration.api.routes import order_router, simulator_router, vendor_router, webhook_router

__all__ = ["order_router", "webhook_router", "vendor_router", "simulator_router"]
