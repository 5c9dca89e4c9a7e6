"""Per-vendor circuit breaker with a count-based sliding window.

States:
    CLOSED    - calls flow; each outcome lands in a window of the last W calls
    OPEN      - calls are refused without touching the vendor or the window
    HALF_OPEN - a limited number of trial calls are let through

Transitions:
    CLOSED → OPEN        failure rate over the window >= threshold
                         (once at least ``minimum_calls`` outcomes are recorded)
    OPEN → HALF_OPEN     ``cooldown_seconds`` after opening
    HALF_OPEN → CLOSED   ``success_threshold`` consecutive trial successes
    HALF_OPEN → OPEN     any trial failure

State is shared by every order calling the vendor. It is guarded by a lock
held only for the bookkeeping on admission and on completion, never for the
duration of the call itself.

Every admission hands out a ``Permit`` stamped with the breaker's generation.
Outcomes reported against a permit from an older generation (a call that was
admitted before the last state change) are ignored.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitConfig:
    window_size: int = 10
    failure_rate_threshold: float = 0.5
    minimum_calls: int | None = None  # defaults to window_size
    cooldown_seconds: float = 30.0
    half_open_max_calls: int = 3
    success_threshold: int = 3

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1")
        if not 0.0 < self.failure_rate_threshold <= 1.0:
            raise ValueError("failure_rate_threshold must be in (0, 1]")
        if self.minimum_calls is not None and not 1 <= self.minimum_calls <= self.window_size:
            raise ValueError("minimum_calls must be between 1 and window_size")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must not be negative")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be at least 1")
        if self.half_open_max_calls < self.success_threshold:
            raise ValueError("half_open_max_calls must allow success_threshold trial calls")

    @property
    def effective_minimum_calls(self) -> int:
        return self.minimum_calls if self.minimum_calls is not None else self.window_size


@dataclass(frozen=True)
class Permit:
    generation: int
    state: CircuitState


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        config: CircuitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.config = config or CircuitConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._generation = 0
        self._window: deque[bool] = deque(maxlen=self.config.window_size)
        self._opened_at = 0.0
        self._half_open_calls = 0
        self._trial_successes = 0

        # Lifetime metrics
        self._total_successes = 0
        self._total_failures = 0
        self._total_rejections = 0
        self._times_opened = 0

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------
    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    @property
    def failure_rate(self) -> float:
        with self._lock:
            return self._failure_rate()

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._maybe_half_open()
            return {
                "vendor": self.name,
                "state": self._state.value,
                "window": len(self._window),
                "failure_rate": round(self._failure_rate(), 3),
                "total_successes": self._total_successes,
                "total_failures": self._total_failures,
                "total_rejections": self._total_rejections,
                "times_opened": self._times_opened,
                "failure_rate_threshold": self.config.failure_rate_threshold,
                "cooldown_seconds": self.config.cooldown_seconds,
            }

    # -------------------------------------------------------------------
    # Admission
    # -------------------------------------------------------------------
    def acquire(self) -> Permit | None:
        """Ask to place one call. ``None`` means short-circuit to the fallback."""
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.CLOSED:
                return Permit(self._generation, self._state)
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls < self.config.half_open_max_calls:
                self._half_open_calls += 1
                return Permit(self._generation, self._state)
            self._total_rejections += 1
            return None

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    def record_success(self, permit: Permit) -> None:
        with self._lock:
            if permit.generation != self._generation:
                return
            self._total_successes += 1
            if self._state == CircuitState.HALF_OPEN:
                self._trial_successes += 1
                if self._trial_successes >= self.config.success_threshold:
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._window.append(True)

    def record_failure(self, permit: Permit) -> None:
        with self._lock:
            if permit.generation != self._generation:
                return
            self._total_failures += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._window.append(False)
                if (
                    len(self._window) >= self.config.effective_minimum_calls
                    and self._failure_rate() >= self.config.failure_rate_threshold
                ):
                    self._transition(CircuitState.OPEN)

    def release(self, permit: Permit) -> None:
        """Hand back a permit whose call never produced an outcome."""
        with self._lock:
            if permit.generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
                self._half_open_calls -= 1

    def reset(self) -> None:
        """Force the breaker back to CLOSED with an empty window."""
        with self._lock:
            self._transition(CircuitState.CLOSED)

    # -------------------------------------------------------------------
    # Internals (lock held)
    # -------------------------------------------------------------------
    def _failure_rate(self) -> float:
        if not self._window:
            return 0.0
        return self._window.count(False) / len(self._window)

    def _maybe_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._clock() - self._opened_at >= self.config.cooldown_seconds:
            self._transition(CircuitState.HALF_OPEN)

    def _transition(self, target: CircuitState) -> None:
        self._state = target
        self._generation += 1
        self._half_open_calls = 0
        self._trial_successes = 0
        if target == CircuitState.OPEN:
            self._opened_at = self._clock()
            self._times_opened += 1
        if target in (CircuitState.OPEN, CircuitState.CLOSED):
            self._window.clear()
