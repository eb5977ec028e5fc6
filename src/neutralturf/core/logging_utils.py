"""Logging utilities for colorized terminal output.

This module provides a ColoredFormatter and setup function for consistent
logging with visual emphasis on warnings and errors in terminal output.
Skipped corpus files are reported as warnings, so they stand out in a long
aggregation run.
"""

from __future__ import annotations

import logging
import sys


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI color codes for WARNING and ERROR levels.

    Colors are only applied when output is to an interactive terminal (TTY).
    When redirecting to a file or pipe, plain text is used.

    Attributes
    ----------
    COLORS : dict
        Mapping of log levels to ANSI color codes.
    RESET : str
        ANSI code to reset text formatting.
    """

    COLORS = {
        logging.WARNING: "\033[93m",  # Yellow
        logging.ERROR: "\033[91m",  # Red
        logging.CRITICAL: "\033[91m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color and sys.stderr.isatty():
            return f"{color}{message}{self.RESET}"
        return message


def setup_logging(quiet: bool = False, debug: bool = False) -> None:
    """Set up root logging with colored output for warnings and errors.

    Parameters
    ----------
    quiet : bool, optional
        Show WARNING and above only.
    debug : bool, optional
        Show DEBUG and above. Takes precedence over ``quiet``.

    Examples
    --------
    >>> from neutralturf.core.logging_utils import setup_logging
    >>> setup_logging()  # INFO and above, progress messages included
    >>> setup_logging(quiet=True)  # skipped files and errors only
    """
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s %(name)s: %(message)s"
    elif quiet:
        level = logging.WARNING
        fmt = "%(message)s"
    else:
        level = logging.INFO
        fmt = "%(message)s"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter(fmt))

    logging.root.handlers = []
    logging.root.addHandler(handler)
    logging.root.setLevel(level)
