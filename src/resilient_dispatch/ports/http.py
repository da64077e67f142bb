"""HTTP port definitions (DTOs and transport interface)."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

__all__ = [
    "ExecutionResult",
    "HttpMethod",
    "Priority",
    "RequestDescriptor",
    "TransportPort",
    "TransportResponse",
]

Hook = Callable[..., Any]


class HttpMethod(str, Enum):
    """Supported HTTP verbs."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class Priority(str, Enum):
    """Scheduler tier a descriptor is queued into."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical request as submitted by a caller.

    Frozen so that nothing can change it once it sits in a queue.
    Time values are in milliseconds. ``retries`` is validated at dispatch
    time by the executor, not here.

    Attributes:
        url: Target endpoint.
        query: Mapping serialized into the query string.
        params: Mapping JSON-encoded as the body for non-GET methods.
        method: HTTP verb.
        priority: Scheduler tier.
        retries: Number of attempts for a bounded request.
        timeout_ms: Per-attempt timeout.
        delay_ms: Minimum wall-clock time spent on a successful attempt.
        infinity: Repeat until cancelled instead of a bounded retry count.
        interval_ms: Pause between polling iterations.
        before_send: Called right before dispatch.
        on_success: Called with the response data.
        on_error: Called with the terminal error.
    """

    url: str
    query: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    method: HttpMethod = HttpMethod.GET
    priority: Priority = Priority.MEDIUM
    retries: int = 1
    timeout_ms: int = 5000
    delay_ms: int = 500
    infinity: bool = False
    interval_ms: int = 3000
    before_send: Hook | None = None
    on_success: Hook | None = None
    on_error: Hook | None = None


@dataclass(slots=True, frozen=True)
class TransportResponse:
    """Fully read response of a single exchange.

    Attributes:
        status: HTTP status code.
        content_type: Value of the Content-Type header ("" when absent).
        cookies: Raw Set-Cookie header values, in order.
        body: Raw response body.
        headers: Remaining response headers.
    """

    status: int
    content_type: str = ""
    cookies: tuple[str, ...] = ()
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    def parsed_body(self) -> Any:
        """Decode the body according to its content type.

        Returns:
            Decoded JSON, decoded text, or this response when the content
            type is neither.
        """
        content_type = self.content_type.lower()
        if "application/json" in content_type:
            try:
                return json.loads(self.body) if self.body else None
            except ValueError:
                return self.body.decode("utf-8", errors="replace")
        if content_type.startswith("text/"):
            return self.body.decode("utf-8", errors="replace")
        return self


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Outcome of one logical request."""

    average_response_time_sec: float
    data: Any
    status: int | None = None


class TransportPort(Protocol):
    """Interface performing exactly one network exchange.

    Implementations must raise ``TransportFailure`` on network errors and
    must tolerate task cancellation (used for per-attempt timeouts).
    """

    async def exchange(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: str | None,
    ) -> TransportResponse:
        """Send one request and return the fully read response."""
        ...
