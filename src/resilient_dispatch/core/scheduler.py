"""Priority queue scheduler draining three tiers on fixed intervals."""

import asyncio
import contextlib
import inspect
import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from resilient_dispatch.core.circuit_breaker import CircuitBreaker
from resilient_dispatch.core.errors import (
    CircuitOpenRejection,
    DispatchError,
    InvalidConfiguration,
    QueueFullRejection,
)
from resilient_dispatch.core.executor import RetryTimeoutExecutor
from resilient_dispatch.ports.http import Priority, RequestDescriptor

__all__ = ["DEFAULT_TIER_INTERVALS_MS", "PriorityScheduler"]

logger = logging.getLogger(__name__)

DEFAULT_TIER_INTERVALS_MS: dict[Priority, int] = {
    Priority.HIGH: 500,
    Priority.MEDIUM: 1000,
    Priority.LOW: 2000,
}
STOP_POLL_SEC = 0.05


async def _call_hook(name: str, hook: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a caller hook, sync or async, never letting it raise."""
    if hook is None:
        return
    try:
        result = hook(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:  # noqa: BLE001
        logger.error(f"{name} hook raised: {e}", exc_info=True)


class PriorityScheduler:
    """Queues descriptors per priority tier and dispatches them periodically.

    Each tier is drained by its own timer; one head descriptor is removed
    per tick and dispatched as a separate asyncio.Task, so a slow request
    never delays the next tick. Results travel back only through the
    descriptor hooks.

    Enqueue is fire-and-forget: when the circuit breaker is open, the
    tier is full or the priority is unknown, the descriptor is logged and
    dropped.
    """

    def __init__(
        self,
        executor: RetryTimeoutExecutor,
        *,
        queue_limit: int = 10,
        tier_intervals_ms: dict[Priority, int] | None = None,
    ) -> None:
        """Initialize scheduler with empty tiers.

        Args:
            executor: Executor used for dispatch; its breaker guards enqueue.
            queue_limit: Maximum depth of every tier.
            tier_intervals_ms: Drain cadence per tier, defaults to 500/1000/2000.

        Raises:
            ValueError: If the executor has no circuit breaker or
                queue_limit is not positive.
        """
        if executor.breaker is None:
            raise ValueError("PriorityScheduler requires an executor with a circuit breaker")
        if queue_limit < 1:
            raise ValueError(f"queue_limit must be positive (got: {queue_limit})")
        self.executor = executor
        self._breaker: CircuitBreaker = executor.breaker
        self.queue_limit = queue_limit
        self.tier_intervals_ms = {**DEFAULT_TIER_INTERVALS_MS, **(tier_intervals_ms or {})}
        self._queues: dict[Priority, deque[RequestDescriptor]] = {p: deque() for p in Priority}
        self._pending: set[asyncio.Task[None]] = set()
        self._stop = asyncio.Event()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def in_flight(self) -> int:
        """Dispatched descriptors whose executor run has not finished."""
        return len(self._pending)

    def depth(self, priority: Priority | str) -> int:
        """Number of descriptors waiting in a tier."""
        return len(self._queues[Priority(priority)])

    def enqueue(self, descriptor: RequestDescriptor) -> None:
        """Append a descriptor to its tier, or log and drop it.

        Args:
            descriptor: Request to schedule; priority defaults to medium.
        """
        if self.breaker.is_open:
            self._reject(CircuitOpenRejection(f"Circuit breaker is open, dropping {descriptor.url}"))
            return

        try:
            priority = Priority(descriptor.priority or Priority.MEDIUM)
        except ValueError:
            message = f"Unknown priority {descriptor.priority!r}, dropping {descriptor.url}"
            self._reject(InvalidConfiguration(message))
            return
        queue = self._queues[priority]
        if len(queue) >= self.queue_limit:
            message = f"Queue limit exceeded for {priority.value} priority, dropping {descriptor.url}"
            self._reject(QueueFullRejection(message))
            return

        queue.append(descriptor)
        logger.info(f"Request to {descriptor.url} added to {priority.value} priority queue.")

    def reset_circuit_breaker(self) -> None:
        """Close the breaker so new descriptors are accepted again."""
        self.breaker.reset()

    def drain_once(self, priority: Priority | str) -> "asyncio.Task[None] | None":
        """Dispatch the head descriptor of a tier without waiting for it.

        Must be called from inside a running event loop.

        Returns:
            The dispatch task, or None if the tier was empty.
        """
        queue = self._queues[Priority(priority)]
        if not queue:
            return None
        descriptor = queue.popleft()
        task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._dispatch(descriptor))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run(self, stop_fn: Callable[[], bool]) -> None:
        """Drive every tier timer until stop_fn() returns True or stop() is called.

        Args:
            stop_fn: Callable that returns True when draining should end.

        Notes:
            - Ticks are scheduled against the loop's monotonic clock so
              cadence does not drift with dispatch cost.
            - stop_fn is checked every STOP_POLL_SEC, so a tier waiting
              for its next tick is woken without finishing its period.
            - On exit, in-flight dispatches (polling loops included) are
              cancelled and awaited.
        """
        self._stop.clear()
        try:
            await asyncio.gather(self._watch_stop(stop_fn), *(self._drain_tier(p) for p in Priority))
        finally:
            await self.shutdown()

    def stop(self) -> None:
        """Wake every tier and make run() return."""
        self._stop.set()

    async def shutdown(self) -> None:
        """Cancel and await every in-flight dispatch."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} in-flight request(s).")

    async def _watch_stop(self, stop_fn: Callable[[], bool]) -> None:
        while not self._stop.is_set():
            if stop_fn():
                self.stop()
                break
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=STOP_POLL_SEC)

    async def _drain_tier(self, priority: Priority) -> None:
        loop = asyncio.get_running_loop()
        period = self.tier_intervals_ms[priority] / 1000
        next_tick = loop.time()

        while not self._stop.is_set():
            next_tick += period
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=max(0, next_tick - loop.time()))
            if self._stop.is_set():
                break
            self.drain_once(priority)

    async def _dispatch(self, descriptor: RequestDescriptor) -> None:
        """Run one descriptor and route its outcome to the hooks."""
        await _call_hook("before_send", descriptor.before_send)

        on_response = None
        if descriptor.infinity and descriptor.on_success is not None:
            on_success = descriptor.on_success

            async def on_response(data: Any) -> None:
                await _call_hook("on_success", on_success, data)

        try:
            result = await self.executor.execute(descriptor, on_response=on_response)
        except asyncio.CancelledError:
            logger.info(f"Dispatch of {descriptor.url} cancelled.")
            raise
        except Exception as e:  # noqa: BLE001
            if not isinstance(e, DispatchError):
                logger.error(f"Unexpected error dispatching {descriptor.url}: {e}", exc_info=True)
            if descriptor.on_error is None:
                logger.warning(f"Request to {descriptor.url} failed with no on_error hook: {e}")
            await _call_hook("on_error", descriptor.on_error, e)
            return

        if not descriptor.infinity:
            await _call_hook("on_success", descriptor.on_success, result)

    @staticmethod
    def _reject(rejection: DispatchError) -> None:
        logger.error(f"{type(rejection).__name__}: {rejection}")
