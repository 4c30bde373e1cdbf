"""
Logging setup for the rgbdgeom package logger.

Handlers are attached to the ``rgbdgeom`` logger only, so embedding
applications keep control of the root logger. Records still propagate to
the root logger.
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "rgbdgeom"
DEFAULT_FORMAT = "[%(asctime)s] %(name)s:%(levelname)s - %(message)s"


def setup_logging(level: str = "INFO",
                  log_file: Optional[str] = None,
                  format_string: Optional[str] = None) -> logging.Logger:
    """
    Configure the rgbdgeom package logger.

    Calling again replaces the handlers installed by the previous call
    instead of stacking duplicates.

    Args:
        level: Level name, usually ``KernelConfig.log_level``
        log_file: Optional file that also receives the records
        format_string: Custom format string

    Returns:
        The ``rgbdgeom`` logger
    """
    level_no = logging.getLevelName(str(level).upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown logging level: {level}")

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in [h for h in logger.handlers if getattr(h, "_rgbdgeom", False)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._rgbdgeom = True
        logger.addHandler(handler)

    logger.setLevel(level_no)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger, e.g. ``rgbdgeom.cli``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
