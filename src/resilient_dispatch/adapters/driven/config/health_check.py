"""Healthcheck validator for container orchestration."""

import logging

from resilient_dispatch.adapters.driven.config.settings import load_settings
from resilient_dispatch.adapters.driven.logging.logging_config import configure_logs

__all__ = ["main"]

logger = logging.getLogger(__name__)


def main() -> int:
    """Validate that the dispatcher could start.

    Checks that the environment is complete and the requests file parses
    into valid descriptors. No network traffic is sent.

    Returns:
        0 if healthy, 1 if unhealthy.
    """
    configure_logs()

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(f"Dispatcher healthcheck FAILED: {exc}")
        return 1

    logger.info(f"Dispatcher healthcheck OK ({len(settings.requests)} requests)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
