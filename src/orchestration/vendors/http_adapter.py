"""HTTP vendor adapter (production).

One ``httpx.AsyncClient`` per vendor base URL. Transport trouble is mapped
onto the vendor fault taxonomy so the resilient call wrapper can decide:

- timeouts, connection errors, 5xx, 429  → ``TransientVendorFault`` (retried)
- any other 4xx                          → ``BusinessRejection`` (not retried)
- unparseable body                       → ``TransientVendorFault``

Per-attempt deadlines are enforced by the wrapper; the client timeout here
is only a backstop for the socket layer.
"""

import httpx

from orchestration.resilience.faults import BusinessRejection, TransientVendorFault
from orchestration.vendors.port import (
    FraudRequest,
    FraudResponse,
    PaymentRequest,
    PaymentResponse,
    ShippingRequest,
    ShippingResponse,
    TaxRequest,
    TaxResponse,
    VendorPort,
)

ENDPOINTS = {
    "fraud": "/check",
    "tax": "/calculate",
    "shipping": "/rates",
    "payment": "/charge",
}


class HttpVendors(VendorPort):
    def __init__(
        self,
        base_urls: dict[str, str],
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        missing = set(ENDPOINTS) - set(base_urls)
        if missing:
            raise ValueError(f"Missing base URL for vendors: {sorted(missing)}")
        self._clients = {
            vendor: httpx.AsyncClient(
                base_url=base_urls[vendor],
                headers={"X-API-Key": api_key},
                timeout=timeout,
                transport=transport,
            )
            for vendor in ENDPOINTS
        }

    async def _post(self, vendor: str, payload: dict) -> dict:
        client = self._clients[vendor]
        try:
            response = await client.post(ENDPOINTS[vendor], json=payload)
        except httpx.TimeoutException as exc:
            raise TransientVendorFault(vendor, f"timeout: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientVendorFault(vendor, f"transport error: {exc}") from exc

        status = response.status_code
        if status >= 500 or status == 429:
            raise TransientVendorFault(vendor, f"HTTP {status}")
        if status >= 400:
            raise BusinessRejection(vendor, response.text or f"HTTP {status}", status_code=status)

        try:
            return response.json()
        except ValueError as exc:
            raise TransientVendorFault(vendor, "invalid JSON body") from exc

    @staticmethod
    def _parse(vendor: str, parser, data: dict):
        try:
            return parser(data)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise TransientVendorFault(vendor, f"malformed response: {exc}") from exc

    async def check_fraud(self, request: FraudRequest) -> FraudResponse:
        data = await self._post("fraud", request.to_wire())
        return self._parse("fraud", FraudResponse.from_wire, data)

    async def calculate_tax(self, request: TaxRequest) -> TaxResponse:
        data = await self._post("tax", request.to_wire())
        return self._parse("tax", TaxResponse.from_wire, data)

    async def calculate_shipping(self, request: ShippingRequest) -> ShippingResponse:
        data = await self._post("shipping", request.to_wire())
        return self._parse("shipping", ShippingResponse.from_wire, data)

    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        data = await self._post("payment", request.to_wire())
        return self._parse("payment", PaymentResponse.from_wire, data)

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
