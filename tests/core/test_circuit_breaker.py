"""Tests for the circuit breaker state machine."""

import pytest

from resilient_dispatch.core.circuit_breaker import CircuitBreaker, CircuitState
from resilient_dispatch.core.errors import InvalidConfiguration

__all__ = []


def test_breaker_starts_closed() -> None:
    """A new breaker is closed with no failures."""
    breaker = CircuitBreaker(threshold=3)

    assert breaker.state is CircuitState.CLOSED
    assert breaker.failures == 0
    assert not breaker.is_open


@pytest.mark.parametrize("threshold", [1, 3, 7])
def test_breaker_opens_exactly_at_threshold(threshold: int) -> None:
    """The circuit opens on the failure that reaches the threshold, not before."""
    breaker = CircuitBreaker(threshold=threshold)

    for _ in range(threshold - 1):
        breaker.record_failure()
    assert not breaker.is_open

    breaker.record_failure()
    assert breaker.is_open
    assert breaker.state is CircuitState.OPEN


def test_breaker_stays_open_and_keeps_counting() -> None:
    """Further failures keep the circuit open."""
    breaker = CircuitBreaker(threshold=2)
    for _ in range(5):
        breaker.record_failure()

    assert breaker.is_open
    assert breaker.failures == 5


def test_reset_closes_and_zeroes_counter() -> None:
    """reset() restores the accepting state with counter at zero."""
    breaker = CircuitBreaker(threshold=2)
    breaker.record_failure()
    breaker.record_failure()

    breaker.reset()

    assert breaker.state is CircuitState.CLOSED
    assert breaker.failures == 0


def test_reset_on_closed_breaker_clears_partial_count() -> None:
    """reset() also clears failures accumulated below the threshold."""
    breaker = CircuitBreaker(threshold=5)
    breaker.record_failure()

    breaker.reset()
    for _ in range(4):
        breaker.record_failure()

    assert not breaker.is_open


@pytest.mark.parametrize("threshold", [0, -3])
def test_breaker_rejects_non_positive_threshold(threshold: int) -> None:
    """Threshold must be at least one."""
    with pytest.raises(InvalidConfiguration):
        CircuitBreaker(threshold=threshold)
