"""Retry-timeout executor running one logical request to completion."""

import asyncio
import contextlib
import inspect
import json
import logging
import math
import statistics
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

from resilient_dispatch.core.circuit_breaker import CircuitBreaker
from resilient_dispatch.core.errors import (
    AttemptError,
    AttemptTimeout,
    InvalidConfiguration,
    MaxRetriesExceeded,
    TransportFailure,
)
from resilient_dispatch.core.session import SessionContext
from resilient_dispatch.ports.http import (
    ExecutionResult,
    HttpMethod,
    RequestDescriptor,
    TransportPort,
    TransportResponse,
)
from resilient_dispatch.ports.metrics import HttpAttemptDto, MetricsPort

__all__ = [
    "PollingHandle",
    "RetryTimeoutExecutor",
    "build_body",
    "build_url",
    "floor_2dp",
    "get_now_time",
]

logger = logging.getLogger(__name__)

FIRST_FAILING_HTTP_CODE = 400


def get_now_time() -> float:
    """Get current monotonic time in seconds from the running loop."""
    return asyncio.get_running_loop().time()


def floor_2dp(value: float) -> float:
    """Floor seconds to two decimals, ignoring float noise below 1e-6."""
    return math.floor(round(value * 100, 6)) / 100


def build_url(descriptor: RequestDescriptor) -> str:
    """Append the percent-encoded query string to the descriptor URL."""
    if not descriptor.query:
        return descriptor.url
    query = urlencode(dict(descriptor.query), quote_via=quote, safe="")
    separator = "&" if "?" in descriptor.url else "?"
    return f"{descriptor.url}{separator}{query}"


def build_body(descriptor: RequestDescriptor) -> str | None:
    """JSON body for non-GET methods; GET carries none."""
    if HttpMethod(descriptor.method) is HttpMethod.GET:
        return None
    return json.dumps(dict(descriptor.params))


@dataclass
class PollingHandle:
    """Cancellable polling loop started by RetryTimeoutExecutor.start_polling().

    Attributes:
        task: Task running the polling loop.
        cancel_event: Set to stop the loop at its next boundary.
        iterations: Successful polling responses so far.
        last_data: Body of the most recent successful attempt.
    """

    task: "asyncio.Task[ExecutionResult]"
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    iterations: int = 0
    last_data: Any = None

    def cancel(self) -> None:
        """Ask the loop to stop; an attempt already in flight still finishes."""
        self.cancel_event.set()

    async def wait(self) -> ExecutionResult:
        """Wait for the loop to exit after cancel()."""
        return await self.task


class RetryTimeoutExecutor:
    """Wraps a transport with per-attempt timeout, retries and rate shaping.

    Bounded mode makes ``retries`` attempts and returns the average
    response time of the successful ones with the last body. Polling mode
    (``descriptor.infinity``) repeats every ``interval_ms`` until cancelled.

    When a circuit breaker is attached, every failed attempt is counted
    against it.
    """

    def __init__(
        self,
        transport: TransportPort,
        *,
        session: SessionContext | None = None,
        breaker: CircuitBreaker | None = None,
        metrics: MetricsPort | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            transport: Performs single exchanges.
            session: Session token context; a fresh one when omitted.
            breaker: Optional breaker counting failed attempts.
            metrics: Optional collector notified after each attempt.
            clock: Monotonic clock in seconds; the loop clock by default.
        """
        self.transport = transport
        self.session = session or SessionContext()
        self.breaker = breaker
        self.metrics = metrics
        self._clock = clock or get_now_time

    async def execute(
        self,
        descriptor: RequestDescriptor,
        *,
        cancel: asyncio.Event | None = None,
        on_response: Callable[[Any], Any] | None = None,
    ) -> ExecutionResult:
        """Perform one logical request.

        Args:
            descriptor: What to send and how to retry it.
            cancel: Stops a polling loop at its next boundary.
            on_response: Polling mode only; receives every decoded body.

        Returns:
            Average response time and decoded body. A cancelled polling
            loop returns ExecutionResult(0.0, None).

        Raises:
            InvalidConfiguration: If descriptor.retries < 1, the method is
                unknown or params cannot be serialized.
            MaxRetriesExceeded: If every bounded attempt failed.
        """
        if descriptor.retries < 1:
            raise InvalidConfiguration(f"incorrect retries value: {descriptor.retries}")
        url, method, body = self._prepare(descriptor)

        cancel = cancel or asyncio.Event()
        attempts = 0
        timings: list[float] = []

        while descriptor.infinity or attempts < descriptor.retries:
            if cancel.is_set():
                logger.info(f"Polling of {descriptor.url} cancelled")
                break

            start = self._clock()
            try:
                response = await self._attempt(descriptor, url, method, body)
            except AttemptError as e:
                duration = floor_2dp(self._clock() - start)
                self._record(descriptor.url, duration, status=None)
                logger.warning(f"Fetch attempt to {descriptor.url} failed after {duration} seconds: {e}")
                if self.breaker is not None:
                    self.breaker.record_failure()
                if not descriptor.infinity:
                    attempts += 1
                    if attempts >= descriptor.retries:
                        logger.error(f"Max retries reached for {descriptor.url}")
                        raise MaxRetriesExceeded(descriptor.url, attempts) from e
            else:
                elapsed = self._clock() - start
                duration = floor_2dp(elapsed)
                self.session.update_from_cookies(response.cookies)
                self._record(descriptor.url, duration, status=response.status)
                data = response.parsed_body()
                logger.debug(f"Response data: {data!r}")
                logger.info(f"Fetch completed in {duration} seconds")

                if not descriptor.infinity:
                    timings.append(duration)
                    attempts += 1

                remaining = descriptor.delay_ms / 1000 - elapsed
                if remaining > 0:
                    logger.debug("Response was fast, waiting for the delay period...")
                    await asyncio.sleep(remaining)

                if descriptor.infinity:
                    if on_response is not None:
                        result = on_response(data)
                        if inspect.isawaitable(result):
                            await result
                elif attempts >= descriptor.retries:
                    average = round(statistics.fmean(timings), 2)
                    logger.info(f"Average fetch time: {average} seconds")
                    return ExecutionResult(average, data, response.status)

            if descriptor.infinity:
                if descriptor.interval_ms > 0:
                    logger.debug("Awaiting interval for next request...")
                    with contextlib.suppress(asyncio.TimeoutError):
                        await asyncio.wait_for(cancel.wait(), timeout=descriptor.interval_ms / 1000)
                else:
                    # zero interval still yields to the loop
                    await asyncio.sleep(0)

        return ExecutionResult(0.0, None)

    def start_polling(self, descriptor: RequestDescriptor) -> PollingHandle:
        """Run a polling descriptor in the background.

        Args:
            descriptor: Descriptor with ``infinity`` set.

        Returns:
            Handle used to observe and cancel the loop.

        Raises:
            InvalidConfiguration: If the descriptor is not a polling one.
        """
        if not descriptor.infinity:
            raise InvalidConfiguration("start_polling() requires a descriptor with infinity=True")

        cancel_event = asyncio.Event()
        handle: PollingHandle

        def on_response(data: Any) -> None:
            handle.iterations += 1
            handle.last_data = data

        task = asyncio.get_running_loop().create_task(
            self.execute(descriptor, cancel=cancel_event, on_response=on_response)
        )
        handle = PollingHandle(task=task, cancel_event=cancel_event)
        return handle

    @staticmethod
    def _prepare(descriptor: RequestDescriptor) -> tuple[str, str, str | None]:
        """Build url, method and body once, before any exchange happens."""
        try:
            method = HttpMethod(descriptor.method).value
            return build_url(descriptor), method, build_body(descriptor)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"cannot build request to {descriptor.url}: {e}") from e

    async def _attempt(
        self, descriptor: RequestDescriptor, url: str, method: str, body: str | None
    ) -> TransportResponse:
        """Race one exchange against the per-attempt timeout."""
        # headers follow the session token, which may change between attempts
        headers = self.session.build_headers()
        try:
            return await asyncio.wait_for(
                self.transport.exchange(url=url, method=method, headers=headers, body=body),
                timeout=descriptor.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise AttemptTimeout(descriptor.timeout_ms) from e
        except TransportFailure:
            raise
        except Exception as e:  # noqa: BLE001
            raise TransportFailure(str(e) or type(e).__name__) from e

    def _record(self, url: str, duration: float, status: int | None) -> None:
        if self.metrics is None:
            return
        self.metrics.update(
            HttpAttemptDto(
                url=url,
                duration_sec=duration,
                is_failed=status is None or status >= FIRST_FAILING_HTTP_CODE,
                status_code=status,
            )
        )
