"""In-memory sliding-window metrics for transport attempts."""

from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass

from resilient_dispatch.ports.metrics import HttpAttemptDto, MetricsPort

__all__ = ["Metrics"]


@dataclass(slots=True, frozen=True)
class _Sample:
    """Internal record for one attempt."""

    duration_sec: float
    failed: bool
    status_code: int


class Metrics(MetricsPort):
    """Rolling response-time statistics, lock-free for async use.

    Tracks:
    - Rolling average response time.
    - Failure rate (timeouts, network failures, status >= 400).
    - Last status code (0 when the last attempt got no response).
    - Total attempts seen.

    Not thread-safe; create one instance per event loop.
    """

    def __init__(self, *, window_size: int = 100) -> None:
        """Initialize metrics collector.

        Args:
            window_size: Number of recent attempts kept for statistics.
        """
        self._window: deque[_Sample] = deque(maxlen=window_size)
        self._total_seen: int = 0

    def update(self, attempt: HttpAttemptDto) -> None:
        """Record a finished attempt."""
        self._window.append(
            _Sample(
                duration_sec=attempt.duration_sec,
                failed=attempt.is_failed,
                status_code=attempt.status_code or 0,
            )
        )
        self._total_seen += 1

    @property
    def rolling_average(self) -> float | None:
        """Mean duration over the window in seconds, None when empty."""
        if not self._window:
            return None
        return round(statistics.fmean(s.duration_sec for s in self._window), 2)

    def __str__(self) -> str:
        """Return human-readable one-line summary for logging."""
        if not self._window:
            return "Metrics: waiting for data …"

        n_window = len(self._window)
        failures = sum(1 for s in self._window if s.failed)
        fail_pct = (failures / n_window) * 100
        last = self._window[-1]

        return (
            f"avg={self.rolling_average:5.2f} s | "
            f"status={last.status_code:3d} | "
            f"fail={fail_pct:5.1f}% | "
            f"win={n_window}/{self._window.maxlen} | "
            f"total={self._total_seen}"
        )
