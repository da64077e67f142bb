"""Settings port definition (DTO)."""

from dataclasses import dataclass, field

from resilient_dispatch.ports.http import Priority, RequestDescriptor

__all__ = ["DispatcherSettingsPort"]


@dataclass
class DispatcherSettingsPort:
    """Runtime settings for the dispatcher core.

    Keeps the core independent from where configuration comes from.

    Attributes:
        circuit_breaker_threshold: Failed attempts before the breaker opens.
        queue_limit: Maximum depth of every priority tier.
        tier_intervals_ms: Drain cadence per tier.
        requests: Descriptors to enqueue at startup.
        base_url: Sent as Referer when set.
        session_cookie_name: Cookie scanned for the session token.
        session_header_name: Header carrying the session token.
        http_health_check_endpoint: Optional URL probed before starting.
    """

    circuit_breaker_threshold: int = 5
    queue_limit: int = 10
    tier_intervals_ms: dict[Priority, int] = field(
        default_factory=lambda: {Priority.HIGH: 500, Priority.MEDIUM: 1000, Priority.LOW: 2000}
    )
    requests: list[RequestDescriptor] = field(default_factory=list)
    base_url: str | None = None
    session_cookie_name: str = "csrftoken"
    session_header_name: str = "X-CSRFToken"
    http_health_check_endpoint: str | None = None
