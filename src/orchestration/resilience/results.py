"""Outcome of one resilient vendor call.

Exactly one of three shapes, so callers can tell "vendor said no" apart from
"vendor was unreachable and a default stood in":

* ``Success`` - the vendor answered.
* ``FallbackUsed`` - the circuit was open or retries ran out; ``payload`` is
  the vendor's static default.
* ``Rejected`` - the vendor refused (business rejection); not retried.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class VendorCallResult:
    vendor: str
    payload: Any = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return isinstance(self, Success)

    @property
    def used_fallback(self) -> bool:
        return isinstance(self, FallbackUsed)

    @property
    def rejected(self) -> bool:
        return isinstance(self, Rejected)


@dataclass(frozen=True)
class Success(VendorCallResult):
    pass


@dataclass(frozen=True)
class FallbackUsed(VendorCallResult):
    reason: str = ""


@dataclass(frozen=True)
class Rejected(VendorCallResult):
    reason: str = ""
