"""Circuit breaker guarding new enqueues."""

import logging
from enum import Enum

from resilient_dispatch.core.errors import InvalidConfiguration

__all__ = ["CircuitBreaker", "CircuitState"]

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Breaker states. Open is sticky until an explicit reset."""

    CLOSED = "closed"
    OPEN = "open"


class CircuitBreaker:
    """Counts failed attempts and opens once the threshold is reached.

    The counter is incremented once per failed attempt (not per logical
    request) and is only cleared by reset(); successes do not decrement it.
    Not thread-safe; share one instance per event loop.
    """

    def __init__(self, threshold: int = 5) -> None:
        """Initialize a closed breaker.

        Args:
            threshold: Failed attempts that open the circuit.

        Raises:
            InvalidConfiguration: If threshold is below 1.
        """
        if threshold < 1:
            raise InvalidConfiguration(f"circuit breaker threshold must be >= 1 (got: {threshold})")
        self.threshold = threshold
        self.failures = 0
        self.state = CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    def record_failure(self) -> None:
        """Count one failed attempt, opening the circuit at the threshold."""
        self.failures += 1
        if self.failures >= self.threshold and not self.is_open:
            self.state = CircuitState.OPEN
            logger.error(f"Circuit breaker activated after {self.failures} failed attempts.")

    def reset(self) -> None:
        """Zero the counter and close the circuit, whatever is in flight."""
        self.failures = 0
        self.state = CircuitState.CLOSED
        logger.info("Circuit breaker reset.")
