"""Logging setup for supermarkt_compare.

Usage in any module:
    from .log import get_logger
    logger = get_logger(__name__)
"""

from __future__ import annotations

import logging
import sys

_CONFIGURED = False

ROOT_LOGGER = "supermarkt_compare"


def setup_logging(level: int | str = logging.INFO) -> None:
    """Attach a stderr handler to the package logger.

    Only the first call installs the handler; later calls just adjust the level.
    """
    global _CONFIGURED
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    if _CONFIGURED:
        return
    _CONFIGURED = True

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    # Library code never configures handlers; the CLI calls setup_logging().
    return logging.getLogger(name)
