"""Vendor adapter factory.

Provides get_vendors() / set_vendors() to swap implementations:
- FakeVendors for development and testing (default)
- HttpVendors for real vendor endpoints (VENDOR_ADAPTER=http)
"""

from orchestration.settings import Settings
from orchestration.vendors.port import VendorPort

_current_vendors: VendorPort | None = None


def get_vendors(settings: Settings | None = None) -> VendorPort:
    """Return the active vendor adapter, building it from settings on first use."""
    global _current_vendors
    if _current_vendors is None:
        settings = settings or Settings.from_env()
        if settings.vendor_adapter == "fake":
            from orchestration.vendors.fake_adapter import FakeVendors

            _current_vendors = FakeVendors()
        elif settings.vendor_adapter == "http":
            from orchestration.vendors.http_adapter import HttpVendors

            _current_vendors = HttpVendors(
                base_urls={
                    "fraud": settings.fraud_vendor_url,
                    "tax": settings.tax_vendor_url,
                    "shipping": settings.shipping_vendor_url,
                    "payment": settings.payment_vendor_url,
                },
                api_key=settings.vendor_api_key,
            )
        else:
            raise ValueError(f"Unknown vendor adapter: {settings.vendor_adapter}")
    return _current_vendors


def set_vendors(vendors: VendorPort) -> None:
    """Override the active vendor adapter (useful for tests)."""
    global _current_vendors
    _current_vendors = vendors


def reset_vendors() -> None:
    """Reset to the default adapter."""
    global _current_vendors
    _current_vendors = None
