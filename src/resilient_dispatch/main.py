"""Application entrypoint."""

import asyncio
import logging
from typing import Any

from resilient_dispatch.adapters.driven.config.settings import load_settings
from resilient_dispatch.adapters.driven.http.client import HttpClient
from resilient_dispatch.adapters.driven.logging.logging_config import configure_logs
from resilient_dispatch.adapters.driven.metrics.http_metrics import Metrics
from resilient_dispatch.adapters.driving.signals import make_stop_on_sigterm
from resilient_dispatch.core.circuit_breaker import CircuitBreaker
from resilient_dispatch.core.errors import DispatchError
from resilient_dispatch.core.executor import RetryTimeoutExecutor
from resilient_dispatch.core.scheduler import PriorityScheduler
from resilient_dispatch.core.session import SessionContext
from resilient_dispatch.ports.http import ExecutionResult, RequestDescriptor
from resilient_dispatch.ports.settings import DispatcherSettingsPort

__all__ = ["main", "optional_endpoint_health_check", "run"]

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_MS = 10_000


def make_logging_hooks(url: str) -> dict[str, Any]:
    """Hooks reporting the outcome of a request loaded from the requests file."""

    def on_success(result: Any) -> None:
        if isinstance(result, ExecutionResult):
            logger.info(f"{url} succeeded (avg {result.average_response_time_sec} s, status {result.status})")
        else:
            logger.info(f"{url} polled: {result!r}")

    def on_error(error: Exception) -> None:
        logger.error(f"{url} failed: {error}")

    return {"on_success": on_success, "on_error": on_error}


async def main() -> None:
    """Start the dispatcher service.

    Startup sequence:
    1. Configure logging.
    2. Load and validate configuration and the requests file.
    3. Optionally probe the health endpoint.
    4. Enqueue every request and drain the tiers.
    5. Gracefully shutdown on SIGTERM/SIGINT.
    """
    configure_logs()
    logger.info("Starting request dispatcher...")

    try:
        config = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(
            "Configuration error: %s\n"
            "Hint: check REQUESTS_FILE_PATH, CIRCUIT_BREAKER_THRESHOLD, QUEUE_LIMIT "
            "and that the requests file exists and is a valid JSON array.",
            exc,
        )
        return

    # Wrap config into port so core depends on interface (hexagonal)
    settings_port = DispatcherSettingsPort(
        circuit_breaker_threshold=config.circuit_breaker_threshold,
        queue_limit=config.queue_limit,
        tier_intervals_ms=config.tier_intervals_ms,
        requests=[spec.to_descriptor(**make_logging_hooks(spec.url)) for spec in config.requests],
        base_url=config.base_url,
        session_cookie_name=config.session_cookie_name,
        session_header_name=config.session_header_name,
        http_health_check_endpoint=config.http_health_endpoint,
    )

    metrics = Metrics()

    async with HttpClient() as http:
        session = SessionContext(
            base_url=settings_port.base_url,
            cookie_name=settings_port.session_cookie_name,
            header_name=settings_port.session_header_name,
        )
        executor = RetryTimeoutExecutor(
            transport=http,
            session=session,
            breaker=CircuitBreaker(settings_port.circuit_breaker_threshold),
            metrics=metrics,
        )

        if not await optional_endpoint_health_check(settings_port, executor):
            return

        scheduler = PriorityScheduler(
            executor,
            queue_limit=settings_port.queue_limit,
            tier_intervals_ms=settings_port.tier_intervals_ms,
        )
        for descriptor in settings_port.requests:
            scheduler.enqueue(descriptor)

        try:
            await scheduler.run(stop_fn=make_stop_on_sigterm())
        except Exception as e:
            logger.error(f"Unhandled exception in scheduler: {e}", exc_info=True)

        logger.info(f"Dispatcher stopped. {metrics}")


async def optional_endpoint_health_check(
    settings_port: DispatcherSettingsPort, executor: RetryTimeoutExecutor
) -> bool:
    """Probe the health endpoint before dispatching anything.

    Only runs if HEALTH_CHECK_ENDPOINT is configured. The probe shares the
    executor's transport and session but not its circuit breaker.

    Args:
        settings_port: Runtime settings.
        executor: Executor whose transport and session are reused.

    Returns:
        True if healthy (2xx) or check disabled, False otherwise.
    """
    endpoint = settings_port.http_health_check_endpoint
    if not endpoint:
        return True

    logger.info(f"Performing health check on {endpoint}...")
    probe = RetryTimeoutExecutor(transport=executor.transport, session=executor.session)
    try:
        result = await probe.execute(RequestDescriptor(url=endpoint, timeout_ms=PROBE_TIMEOUT_MS, delay_ms=0))
    except DispatchError as e:
        logger.error(f"Health check failed for {endpoint}: {e}, aborting startup")
        return False

    if result.status is None or not 200 <= result.status < 300:
        logger.error(f"Health check for {endpoint} returned status {result.status}, aborting startup")
        return False

    logger.info("Health check passed, starting dispatch...")
    return True


def run() -> None:
    """Console script wrapper around main()."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user (Ctrl+C).")


if __name__ == "__main__":
    run()
