"""Console logging setup for the dispatcher."""

import logging
import os

__all__ = ["configure_logs"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%d/%m/%y %H:%M:%S"


def configure_logs(level: str | None = None) -> None:
    """Configure console logging.

    Root logs at INFO, aiohttp and asyncio at WARNING, and the
    ``resilient_dispatch`` loggers at ``level`` (LOG_LEVEL env var,
    DEBUG by default). Calling it twice does not duplicate the handler.

    Args:
        level: Level name overriding LOG_LEVEL.
    """
    app_level = (level or os.getenv("LOG_LEVEL") or "DEBUG").upper()

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    if not any(getattr(h, "_resilient_dispatch", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._resilient_dispatch = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in ("aiohttp", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("resilient_dispatch").setLevel(app_level)
