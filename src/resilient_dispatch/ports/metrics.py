"""Metrics port definition (interface and DTO)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

__all__ = ["HttpAttemptDto", "MetricsPort"]


@dataclass(slots=True, frozen=True)
class HttpAttemptDto:
    """Immutable snapshot of a single transport attempt.

    Attributes:
        url: Endpoint the attempt was sent to.
        duration_sec: Elapsed time, floored to two decimals.
        is_failed: True on timeout, network error or status >= 400.
        status_code: HTTP status code when a response arrived; None otherwise.
    """

    url: str
    duration_sec: float
    is_failed: bool = False
    status_code: int | None = None


class MetricsPort(Protocol):
    """Interface for recording attempt metrics.

    Implementations must be non-blocking; the executor calls update()
    from inside the event loop after every attempt.
    """

    def update(self, attempt: HttpAttemptDto, /) -> None:
        """Record a finished attempt.

        Args:
            attempt: The attempt to record.
        """
        ...

    def __str__(self) -> str:
        """Return concise textual summary for humans."""
        ...
