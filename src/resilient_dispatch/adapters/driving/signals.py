"""Signal handling for graceful shutdown."""

import asyncio
import logging
import signal
from collections.abc import Callable

__all__ = ["make_stop_on_sigterm"]

logger = logging.getLogger(__name__)


def make_stop_on_sigterm(
    signals: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT),
) -> Callable[[], bool]:
    """Create a stop flag flipped by termination signals.

    The returned callable is what PriorityScheduler.run() polls; once it
    returns True the tier timers stop and in-flight dispatches, including
    polling loops, are cancelled.

    Must be called from inside the running event loop.

    Args:
        signals: Signals that request shutdown.

    Returns:
        Callable that returns True once one of the signals was received.
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"{sig.name} received, stopping dispatcher...")
        stop.set()

    for sig in signals:
        loop.add_signal_handler(sig, handle_signal, sig)

    return stop.is_set
