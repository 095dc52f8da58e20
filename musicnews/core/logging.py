"""Root logger setup, applied once when the application starts."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_handler: logging.Handler | None = None


def configure_logging(level: str | int = "INFO") -> None:
    global _handler
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if _handler is not None and _handler in root_logger.handlers:
        return

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(_handler)
