"""Environment-driven configuration.

Every knob has a development default so the engine runs out of the box
against the fake vendors.
"""

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    vendor_adapter: str = "fake"  # fake | http
    worker_pool_size: int = 8
    callback_base_url: str = "http://localhost:8000"
    fraud_vendor_url: str = "http://localhost:8000/mock-vendor/fraud-api"
    tax_vendor_url: str = "http://localhost:8000/mock-vendor/tax-api"
    shipping_vendor_url: str = "http://localhost:8000/mock-vendor/shipping-api"
    payment_vendor_url: str = "http://localhost:8000/mock-vendor/payment-api"
    vendor_api_key: str = "dev-key"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def payment_callback_url(self) -> str:
        return f"{self.callback_base_url.rstrip('/')}/webhooks/payment"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        pool_size = _env_int("WORKER_POOL_SIZE", defaults.worker_pool_size)
        if pool_size < 1:
            raise ValueError("WORKER_POOL_SIZE must be at least 1")
        return cls(
            environment=(os.getenv("ENVIRONMENT") or defaults.environment).lower(),
            vendor_adapter=os.getenv("VENDOR_ADAPTER", defaults.vendor_adapter).lower(),
            worker_pool_size=pool_size,
            callback_base_url=os.getenv("CALLBACK_BASE_URL", defaults.callback_base_url),
            fraud_vendor_url=os.getenv("FRAUD_VENDOR_URL", defaults.fraud_vendor_url),
            tax_vendor_url=os.getenv("TAX_VENDOR_URL", defaults.tax_vendor_url),
            shipping_vendor_url=os.getenv("SHIPPING_VENDOR_URL", defaults.shipping_vendor_url),
            payment_vendor_url=os.getenv("PAYMENT_VENDOR_URL", defaults.payment_vendor_url),
            vendor_api_key=os.getenv("VENDOR_API_KEY", defaults.vendor_api_key),
        )
