"""Console logging for the storefront process."""

import logging
import sys
from typing import Union

__all__ = ["configure_logging", "LOGGER_NAME"]

LOGGER_NAME = "publishearts"


class ColoredConsoleHandler(logging.StreamHandler):
    """Console handler that colors the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if hasattr(self.stream, "isatty") and self.stream.isatty():
            color = self.COLORS.get(record.levelname, "")
            if color:
                text = text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)
        return text


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach a console handler to the package logger. Safe to call twice.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``

    Returns:
        The ``publishearts`` logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = ColoredConsoleHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(handler)
    return logger
