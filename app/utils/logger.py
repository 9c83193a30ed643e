"""Console logging setup shared by the API and scripts."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", name: str = "app") -> logging.Logger:
    """Attach a single console handler to the ``app`` logger tree.

    Re-configuring removes previously installed handlers so repeated calls
    (reloads, tests) never duplicate output.
    """
    logger = logging.getLogger(name)

    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return logger
