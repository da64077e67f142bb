"""Error taxonomy of the dispatcher."""

__all__ = [
    "AttemptError",
    "AttemptTimeout",
    "CircuitOpenRejection",
    "DispatchError",
    "InvalidConfiguration",
    "MaxRetriesExceeded",
    "QueueFullRejection",
    "TransportFailure",
]


class DispatchError(Exception):
    """Base class for every dispatcher error."""


class InvalidConfiguration(DispatchError, ValueError):
    """A descriptor or component was configured with unusable values."""


class AttemptError(DispatchError):
    """A single attempt failed; recoverable while retry budget remains."""


class AttemptTimeout(AttemptError):
    """An attempt did not finish within its timeout."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Timeout: {timeout_ms} ms")
        self.timeout_ms = timeout_ms


class TransportFailure(AttemptError):
    """The exchange itself failed (connection reset, DNS, ...)."""


class MaxRetriesExceeded(DispatchError):
    """Every attempt of a bounded request failed."""

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"Max retries reached for {url} after {attempts} attempt(s)")
        self.url = url
        self.attempts = attempts


class CircuitOpenRejection(DispatchError):
    """Enqueue refused because the circuit breaker is open.

    Never raised to callers; the scheduler logs it and drops the request.
    """


class QueueFullRejection(DispatchError):
    """Enqueue refused because the priority tier is at capacity.

    Never raised to callers; the scheduler logs it and drops the request.
    """
