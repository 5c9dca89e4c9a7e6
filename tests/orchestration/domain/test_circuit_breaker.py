"""Tests for the per-vendor circuit breaker."""

import pytest
from orchestration.resilience.circuit_breaker import CircuitBreaker, CircuitConfig, CircuitState


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def breaker(clock):
    return CircuitBreaker("payment", CircuitConfig(), clock=clock)


def _fail(breaker, times=1):
    for _ in range(times):
        breaker.record_failure(breaker.acquire())


def _succeed(breaker, times=1):
    for _ in range(times):
        breaker.record_success(breaker.acquire())


class TestCircuitConfig:
    def test_defaults(self):
        config = CircuitConfig()
        assert config.window_size == 10
        assert config.failure_rate_threshold == 0.5
        assert config.effective_minimum_calls == 10
        assert config.cooldown_seconds == 30.0
        assert config.half_open_max_calls == 3
        assert config.success_threshold == 3

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"window_size": 0},
            {"failure_rate_threshold": 0.0},
            {"failure_rate_threshold": 1.5},
            {"minimum_calls": 11},
            {"cooldown_seconds": -1},
            {"success_threshold": 4},
        ],
    )
    def test_invalid_config_rejected(self, kwargs):
        with pytest.raises(ValueError):
            CircuitConfig(**kwargs)


class TestClosedState:
    def test_starts_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.acquire() is not None

    def test_stays_closed_below_minimum_calls(self, breaker):
        _fail(breaker, 9)
        assert breaker.state == CircuitState.CLOSED

    def test_opens_at_threshold_once_window_is_full(self, breaker):
        _succeed(breaker, 5)
        _fail(breaker, 4)
        assert breaker.state == CircuitState.CLOSED
        _fail(breaker)
        assert breaker.state == CircuitState.OPEN

    def test_stays_closed_under_threshold(self, breaker):
        _succeed(breaker, 6)
        _fail(breaker, 4)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_rate == pytest.approx(0.4)

    def test_window_slides(self, breaker):
        _fail(breaker, 4)
        _succeed(breaker, 10)
        # The four failures have slid out of the window
        assert breaker.failure_rate == 0.0
        _fail(breaker, 4)
        assert breaker.state == CircuitState.CLOSED

    def test_minimum_calls_override(self, clock):
        breaker = CircuitBreaker("tax", CircuitConfig(minimum_calls=2), clock=clock)
        _fail(breaker, 2)
        assert breaker.state == CircuitState.OPEN


class TestOpenState:
    def test_open_refuses_calls(self, breaker):
        _fail(breaker, 10)
        assert breaker.acquire() is None
        assert breaker.stats["total_rejections"] == 1

    def test_refusals_do_not_touch_window(self, breaker):
        _fail(breaker, 10)
        for _ in range(5):
            breaker.acquire()
        assert breaker.stats["window"] == 0

    def test_half_opens_after_cooldown(self, breaker, clock):
        _fail(breaker, 10)
        clock.now = 29.9
        assert breaker.state == CircuitState.OPEN
        clock.now = 30.0
        assert breaker.state == CircuitState.HALF_OPEN


class TestHalfOpenState:
    @pytest.fixture()
    def half_open(self, breaker, clock):
        _fail(breaker, 10)
        clock.now += 30
        assert breaker.state == CircuitState.HALF_OPEN
        return breaker

    def test_limits_trial_calls(self, half_open):
        permits = [half_open.acquire() for _ in range(3)]
        assert all(permit is not None for permit in permits)
        assert half_open.acquire() is None

    def test_closes_after_success_threshold(self, half_open):
        _succeed(half_open, 2)
        assert half_open.state == CircuitState.HALF_OPEN
        _succeed(half_open)
        assert half_open.state == CircuitState.CLOSED
        assert half_open.stats["window"] == 0

    def test_trial_failure_reopens(self, half_open, clock):
        _succeed(half_open)
        _fail(half_open)
        assert half_open.state == CircuitState.OPEN
        assert half_open.stats["times_opened"] == 2
        # A fresh cooldown starts from the re-open
        clock.now += 29
        assert half_open.state == CircuitState.OPEN


    def test_released_permit_frees_its_slot(self, half_open):
        permits = [half_open.acquire() for _ in range(3)]
        half_open.release(permits[0])
        assert half_open.acquire() is not None
        assert half_open.acquire() is None

    def test_release_after_a_transition_is_ignored(self, half_open):
        stale = half_open.acquire()
        _fail(half_open)
        half_open.release(stale)
        assert half_open.state == CircuitState.OPEN


class TestGenerations:
    def test_outcome_from_before_a_transition_is_ignored(self, breaker):
        stale = breaker.acquire()
        _fail(breaker, 10)
        assert breaker.state == CircuitState.OPEN
        breaker.record_success(stale)
        breaker.record_failure(stale)
        assert breaker.state == CircuitState.OPEN
        assert breaker.stats["total_failures"] == 10

    def test_closed_call_finishing_during_half_open_is_ignored(self, breaker, clock):
        stale = breaker.acquire()
        _fail(breaker, 10)
        clock.now += 30
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_failure(stale)
        assert breaker.state == CircuitState.HALF_OPEN


class TestStatsAndReset:
    def test_stats_shape(self, breaker):
        _succeed(breaker)
        _fail(breaker)
        stats = breaker.stats
        assert stats["vendor"] == "payment"
        assert stats["state"] == "CLOSED"
        assert stats["window"] == 2
        assert stats["failure_rate"] == 0.5
        assert stats["total_successes"] == 1
        assert stats["total_failures"] == 1

    def test_reset_closes(self, breaker):
        _fail(breaker, 10)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.acquire() is not None
