"""
boardflow.logging_config - Logging setup
========================================

Every module logs through ``logging.getLogger(__name__)``, so all records
end up under the ``boardflow`` package logger configured here.
"""

from __future__ import annotations
import logging
import sys

logger = logging.getLogger("boardflow")


class TerminalFormatter(logging.Formatter):
    """Colored level names for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(level: int | str = logging.INFO, color: bool = True) -> logging.Logger:
    """
    Configure the package logger.

    Parameters
    ----------
    level : int | str
        Logging level, either a number or a name such as ``"DEBUG"``.
    color : bool
        Use colored level names on the terminal handler.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if color:
        handler.setFormatter(TerminalFormatter(fmt, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
