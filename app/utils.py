"""
Logging helpers shared by the whole application.

Usage:
    from app.utils import get_logger

    log = get_logger(__name__)
    log.info("Something happened")
"""
import logging
import sys

from app.core import config


LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str | None = None, force: bool = False) -> None:
    """
    Configure the root logger once with a stdout handler.

    Calling it again is a no-op unless `force` is set.
    """
    root = logging.getLogger()
    if root.handlers and not force:
        return

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    numeric_level = getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger that propagates to the configured root handler."""
    setup_logging()
    return logging.getLogger(name)
