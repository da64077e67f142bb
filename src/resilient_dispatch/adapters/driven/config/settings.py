"""Configuration loading from environment variables and files."""

import json
import logging
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from resilient_dispatch.ports.http import HttpMethod, Priority, RequestDescriptor

__all__ = ["RequestSpec", "Settings", "load_settings"]

load_dotenv()

logger = logging.getLogger(__name__)
_http_url_adapter = TypeAdapter(HttpUrl)


def _validate_http_url(v: str, what: str) -> str:
    try:
        url = _http_url_adapter.validate_python(v)
        if url.scheme not in ("http", "https"):
            raise ValueError("Only http:// and https:// URLs allowed")
    except Exception as e:
        raise ValueError(f"Invalid {what}: {e}") from e
    return v


class RequestSpec(BaseModel):
    """One entry of the requests file, using the caller-facing keys.

    Times are milliseconds. ``retries`` is deliberately not bounded here:
    the executor rejects values below 1 when the request is dispatched.
    """

    url: str = Field(..., description="Endpoint to call.")
    query: dict[str, Any] = Field(default_factory=dict, description="Query string parameters.")
    params: dict[str, Any] = Field(default_factory=dict, description="JSON body for non-GET methods.")
    method: HttpMethod = HttpMethod.GET
    priority: Priority = Priority.MEDIUM
    retries: int = 1
    timeout: int = Field(5000, gt=0, description="Per-attempt timeout in ms.")
    delay: int = Field(500, ge=0, description="Minimum time per successful attempt in ms.")
    infinity: bool = Field(False, description="Poll until shutdown instead of retrying.")
    interval: int = Field(3000, ge=0, description="Pause between polls in ms.")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that the request URL is an HTTP(S) URL."""
        return _validate_http_url(v, "request url")

    def to_descriptor(self, **hooks: Any) -> RequestDescriptor:
        """Build the immutable descriptor, attaching optional hooks.

        Args:
            **hooks: before_send, on_success and/or on_error callables.

        Returns:
            Descriptor ready to enqueue.
        """
        return RequestDescriptor(
            url=self.url,
            query=self.query,
            params=self.params,
            method=self.method,
            priority=self.priority,
            retries=self.retries,
            timeout_ms=self.timeout,
            delay_ms=self.delay,
            infinity=self.infinity,
            interval_ms=self.interval,
            **hooks,
        )


class Settings(BaseModel):
    """Runtime configuration for the dispatcher service.

    Attributes:
        circuit_breaker_threshold: Failed attempts before the breaker opens.
        queue_limit: Maximum depth of each priority tier.
        high_interval_ms: Drain cadence of the high tier.
        medium_interval_ms: Drain cadence of the medium tier.
        low_interval_ms: Drain cadence of the low tier.
        base_url: Optional Referer for outgoing requests.
        session_cookie_name: Cookie scanned for the session token.
        session_header_name: Header carrying the session token.
        http_health_endpoint: Optional endpoint to probe before starting.
        requests_file_path: Path to JSON file with request descriptors.
        requests: Parsed request descriptors (loaded from file).
    """

    circuit_breaker_threshold: int = Field(5, gt=0)
    queue_limit: int = Field(10, gt=0)
    high_interval_ms: int = Field(500, gt=0)
    medium_interval_ms: int = Field(1000, gt=0)
    low_interval_ms: int = Field(2000, gt=0)
    base_url: str | None = None
    session_cookie_name: str = "csrftoken"
    session_header_name: str = "X-CSRFToken"
    http_health_endpoint: str | None = Field(
        default=None,
        description="Optional endpoint to probe; no health check when unset.",
    )
    requests_file_path: str = Field(..., description="Path to JSON file containing request descriptors")
    requests: list[RequestSpec] = Field(default_factory=list)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        """Validate the Referer base URL when provided."""
        return v if v is None else _validate_http_url(v, "base url")

    @field_validator("http_health_endpoint")
    @classmethod
    def validate_http_health_endpoint(cls, v: str | None) -> str | None:
        """Validate the health endpoint when provided."""
        return v if v is None else _validate_http_url(v, "health endpoint")

    @property
    def tier_intervals_ms(self) -> dict[Priority, int]:
        return {
            Priority.HIGH: self.high_interval_ms,
            Priority.MEDIUM: self.medium_interval_ms,
            Priority.LOW: self.low_interval_ms,
        }

    def load_requests(self) -> None:
        """Load and validate request descriptors from the JSON file.

        Raises:
            ValueError: If file not found, invalid JSON, wrong format, or empty.
        """
        try:
            with open(self.requests_file_path) as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ValueError(f"Requests file not found: {self.requests_file_path}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Requests file contains invalid JSON: {self.requests_file_path}") from e

        if not isinstance(data, list):
            raise ValueError("Requests file must be a JSON array")
        if not data:
            raise ValueError("Requests file is empty")

        try:
            self.requests = [RequestSpec.model_validate(item) for item in data]
        except ValidationError as e:
            raise ValueError(f"Invalid request in {self.requests_file_path}: {e}") from e
        logger.debug(f"Loaded {len(self.requests)} requests from {self.requests_file_path}")


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
        if value <= 0:
            raise ValueError("Must be positive")
    except ValueError as e:
        raise RuntimeError(f"{name} must be a positive integer (got: {raw})") from e
    return value


def load_settings() -> Settings:
    """Load and validate settings from environment and files.

    Required environment variables:
    - REQUESTS_FILE_PATH: JSON array of request descriptors.

    Optional:
    - CIRCUIT_BREAKER_THRESHOLD, QUEUE_LIMIT: positive integers.
    - HIGH_INTERVAL_MS, MEDIUM_INTERVAL_MS, LOW_INTERVAL_MS: tier cadence.
    - BASE_URL: Referer sent with every request.
    - SESSION_COOKIE_NAME, SESSION_HEADER_NAME: session token plumbing.
    - HEALTH_CHECK_ENDPOINT: URL to probe before starting.

    Returns:
        Validated Settings object.

    Raises:
        RuntimeError: If required env vars missing or invalid.
        ValueError: If configuration is invalid.
    """
    try:
        requests_path = os.environ["REQUESTS_FILE_PATH"]
    except KeyError as e:
        raise RuntimeError(f"Missing required environment variable: {e.args[0]}") from e

    settings = Settings(
        circuit_breaker_threshold=_positive_int_env("CIRCUIT_BREAKER_THRESHOLD", 5),
        queue_limit=_positive_int_env("QUEUE_LIMIT", 10),
        high_interval_ms=_positive_int_env("HIGH_INTERVAL_MS", 500),
        medium_interval_ms=_positive_int_env("MEDIUM_INTERVAL_MS", 1000),
        low_interval_ms=_positive_int_env("LOW_INTERVAL_MS", 2000),
        base_url=os.getenv("BASE_URL") or None,
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME") or "csrftoken",
        session_header_name=os.getenv("SESSION_HEADER_NAME") or "X-CSRFToken",
        http_health_endpoint=os.getenv("HEALTH_CHECK_ENDPOINT") or None,
        requests_file_path=requests_path,
    )

    settings.load_requests()

    logger.info(
        f"Dispatcher configured: threshold={settings.circuit_breaker_threshold}, "
        f"queue_limit={settings.queue_limit}, "
        f"requests={len(settings.requests)}, "
        f"health_check={settings.http_health_endpoint or '<disabled>'}"
    )

    return settings
