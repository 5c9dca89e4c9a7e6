"""Vendor fault taxonomy.

Vendor clients raise these; the resilient call wrapper absorbs them. The
orchestrator never sees one.
"""


class VendorFault(Exception):
    """Base class for faults raised by a vendor client."""

    retryable = False

    def __init__(self, vendor: str, message: str) -> None:
        self.vendor = vendor
        super().__init__(f"{vendor}: {message}")


class TransientVendorFault(VendorFault):
    """Network error, 5xx, or anything else worth retrying."""

    retryable = True


class BusinessRejection(VendorFault):
    """The vendor understood the request and refused it (4xx-style)."""

    def __init__(self, vendor: str, reason: str, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(vendor, f"rejected: {reason}")
