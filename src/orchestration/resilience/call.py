"""Resilient call wrapper: timeout, bounded retry and circuit breaking around one vendor.

A ``ResilientCall`` wraps a single async vendor operation and a
``VendorPolicy``. ``call(request)`` always returns a ``VendorCallResult``;
vendor faults never propagate to the caller.

Per attempt:
    1. Ask the circuit for a permit. No permit → ``FallbackUsed`` immediately.
    2. Run the operation under ``asyncio.wait_for`` (the attempt task is
       cancelled on timeout).
    3. Classify the outcome:
       - payload accepted               → ``Success``
       - payload rejected by contract   → ``Rejected`` (no retry)
       - ``BusinessRejection`` fault    → ``Rejected`` or fallback (no retry)
       - timeout / transient fault      → retry after backoff, or fallback when
                                          attempts run out
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from orchestration.resilience.circuit_breaker import CircuitBreaker, CircuitConfig, Permit
from orchestration.resilience.faults import BusinessRejection
from orchestration.resilience.results import FallbackUsed, Rejected, Success, VendorCallResult
from orchestration.resilience.retry import RetryPolicy, is_retryable

logger = structlog.get_logger(__name__)


def _never_rejects(_payload: Any) -> str | None:
    return None


@dataclass(frozen=True)
class VendorPolicy:
    """Everything the wrapper needs to know about one vendor."""

    timeout: float
    retry: RetryPolicy
    fallback: Callable[[Any], Any]
    circuit: CircuitConfig = field(default_factory=CircuitConfig)
    # Maps a response payload to a rejection reason, or None when accepted
    rejects: Callable[[Any], str | None] = _never_rejects
    # Whether a rejection is a vendor-health signal for the circuit
    rejection_counts_as_failure: bool = False
    # Whether a transport-level BusinessRejection degrades to the fallback
    fallback_on_rejection: bool = False

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class ResilientCall:
    def __init__(
        self,
        vendor: str,
        invoke: Callable[[Any], Awaitable[Any]],
        policy: VendorPolicy,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.vendor = vendor
        self.policy = policy
        self.breaker = breaker or CircuitBreaker(vendor, policy.circuit)
        self._invoke = invoke
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def call(self, request: Any) -> VendorCallResult:
        policy = self.policy
        attempts = 0
        last_error: BaseException | None = None

        while attempts < policy.retry.max_attempts:
            permit = self.breaker.acquire()
            if permit is None:
                reason = "circuit open" if last_error is None else f"circuit opened after: {last_error}"
                return self._fallback(request, attempts, reason)

            attempts += 1
            try:
                payload = await asyncio.wait_for(self._invoke(request), timeout=policy.timeout)
            except asyncio.CancelledError:
                self.breaker.release(permit)
                raise
            except BusinessRejection as exc:
                self._record_rejection(permit)
                logger.warning(
                    "Vendor rejected request",
                    vendor=self.vendor,
                    reason=exc.reason,
                    status_code=exc.status_code,
                )
                if policy.fallback_on_rejection:
                    return self._fallback(request, attempts, f"rejected: {exc.reason}")
                return Rejected(vendor=self.vendor, attempts=attempts, reason=exc.reason)
            except Exception as exc:  # noqa: BLE001 - every vendor fault is absorbed here
                self.breaker.record_failure(permit)
                last_error = exc
                if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
                    last_error = TimeoutError(f"{self.vendor} timed out after {policy.timeout}s")
                if not is_retryable(exc):
                    break
                logger.warning(
                    "Vendor call attempt failed",
                    vendor=self.vendor,
                    attempt=attempts,
                    max_attempts=policy.retry.max_attempts,
                    error=str(last_error),
                )
                if attempts < policy.retry.max_attempts:
                    await self._sleep(policy.retry.delay(attempts - 1, self._rng))
                continue

            reason = policy.rejects(payload)
            if reason is not None:
                self._record_rejection(permit)
                logger.info("Vendor declined", vendor=self.vendor, reason=reason)
                return Rejected(vendor=self.vendor, payload=payload, attempts=attempts, reason=reason)

            self.breaker.record_success(permit)
            return Success(vendor=self.vendor, payload=payload, attempts=attempts)

        return self._fallback(request, attempts, f"retries exhausted: {last_error}")

    def _record_rejection(self, permit: Permit) -> None:
        if self.policy.rejection_counts_as_failure:
            self.breaker.record_failure(permit)
        else:
            # A refusal is a healthy answer
            self.breaker.record_success(permit)

    def _fallback(self, request: Any, attempts: int, reason: str) -> FallbackUsed:
        logger.warning("Using vendor fallback", vendor=self.vendor, attempts=attempts, reason=reason)
        return FallbackUsed(
            vendor=self.vendor,
            payload=self.policy.fallback(request),
            attempts=attempts,
            reason=reason,
        )
