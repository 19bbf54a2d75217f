"""Logging helpers for geoorbit.

Library modules only ask for named loggers; applications call
:func:`setup_logging` once to attach a console handler.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

ROOT_LOGGER = "geoorbit"


def setup_logging(
    *,
    level: int = logging.INFO,
    stream=None,
) -> logging.Logger:
    """Configure console logging for the ``geoorbit`` namespace."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler = logging.StreamHandler(stream=stream or sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a named logger under the ``geoorbit`` namespace.

    Module names that already start with ``geoorbit.`` are used as-is.
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


__all__ = ["setup_logging", "get_logger"]
