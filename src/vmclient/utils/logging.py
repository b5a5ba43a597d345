"""Logging setup for the vmclient package.

All loggers live under the ``vmclient`` namespace so a single call to
`setup_logging` controls the whole client.
"""

from __future__ import annotations

import logging
import os

_ROOT = "vmclient"


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure the ``vmclient`` logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...). Falls back to
            ``VMCLIENT_LOG_LEVEL`` and then WARNING.
        log_file: Optional file path that receives a copy of the output.
    """
    if level is None:
        level = os.environ.get("VMCLIENT_LOG_LEVEL", "WARNING")

    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(_ROOT)
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package namespace.

    Args:
        name: Module name, usually ``__name__``.
    """
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")


setup_logging()
