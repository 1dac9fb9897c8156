"""
Tests for the circuit breaker state machine.
"""
import pytest

from stackcost.resilience.circuit_breaker import (
    CircuitBreaker, CircuitBreakerOpenError, CircuitState, get_circuit_breaker, reset_circuit_breakers,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("test", failure_threshold=3, open_duration=60, clock=clock)


def test_opens_after_consecutive_failures(breaker):
    breaker.record_failure()
    breaker.record_failure()
    assert breaker.allow_request()

    breaker.record_failure()
    assert breaker.current_state() == CircuitState.OPEN
    assert not breaker.allow_request()


def test_success_resets_failure_count(breaker):
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.current_state() == CircuitState.CLOSED


def test_half_open_after_open_duration(breaker, clock):
    for _ in range(3):
        breaker.record_failure()

    clock.now = 59
    assert not breaker.allow_request()

    clock.now = 60
    assert breaker.allow_request()
    assert breaker.current_state() == CircuitState.HALF_OPEN
    # Only one trial request
    assert not breaker.allow_request()


def test_half_open_success_closes(breaker, clock):
    for _ in range(3):
        breaker.record_failure()
    clock.now = 61
    breaker.allow_request()

    breaker.record_success()
    assert breaker.current_state() == CircuitState.CLOSED
    assert breaker.allow_request()


def test_half_open_failure_reopens(breaker, clock):
    for _ in range(3):
        breaker.record_failure()
    clock.now = 61
    breaker.allow_request()

    breaker.record_failure()
    assert breaker.current_state() == CircuitState.OPEN
    assert not breaker.allow_request()


def test_check_raises_when_open(breaker):
    for _ in range(3):
        breaker.record_failure()

    with pytest.raises(CircuitBreakerOpenError, match="test temporarily unavailable"):
        breaker.check()


def test_shared_breakers_are_per_service():
    first = get_circuit_breaker("svc-a")
    assert get_circuit_breaker("svc-a") is first
    assert get_circuit_breaker("svc-b") is not first

    for _ in range(3):
        first.record_failure()
    reset_circuit_breakers()
    assert first.current_state() == CircuitState.CLOSED
