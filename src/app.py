"""Vendorflow FastAPI application.

Accepts orders over HTTP and orchestrates them in the background across the
fraud, tax, shipping and payment vendors. The same process serves the
payment webhook and, outside production, a simulator for all four vendors.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orchestration.api import order_router, simulator_router, vendor_router, webhook_router
from orchestration.domain import orchestration
from orchestration.engine import VendorEngine, build_engine
from orchestration.utils.logging import configure_logging
from orchestration.vendors.fake_adapter import FakeVendors

# Elements register on import; the domain is initialized once they all have
orchestration.init(traverse=False)


def create_app(engine: VendorEngine | None = None, simulator: FakeVendors | None = None) -> FastAPI:
    """Build the application around an engine (built from the environment by default)."""
    engine = engine or build_engine()
    configure_logging(engine.settings.environment)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(
        title="Vendorflow API",
        description="Vendor orchestration engine — orders, payment webhooks, vendor health",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.simulator = simulator or FakeVendors()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(order_router)
    app.include_router(webhook_router)
    app.include_router(vendor_router)
    if not engine.settings.is_production:
        app.include_router(simulator_router)

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------
    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "environment": engine.settings.environment,
                "vendor_adapter": engine.settings.vendor_adapter,
                "dispatcher": {
                    "running": engine.dispatcher.running,
                    "pool_size": engine.dispatcher.pool_size,
                    "queued": engine.ingress.qsize(),
                },
                "pending_callbacks": len(engine.registry.outstanding()),
            }
        )

    return app


app = create_app()
