"""
Logging setup for the sheafy command line.
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional, TextIO

from colorama import Fore, Style, just_fix_windows_console

_LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: Style.DIM,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColorFormatter(logging.Formatter):
    """Prefix records with ``[sheafy]`` and colour them by level."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__("[sheafy] %(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno, "")
        if self.use_color and color:
            return color + msg + Style.RESET_ALL
        return msg


def setup_logging(
    verbose: int = 0,
    quiet: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a single stderr handler to the ``sheafy`` logger."""
    just_fix_windows_console()
    stream = stream if stream is not None else sys.stderr

    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter(use_color=stream.isatty()))

    logger = logging.getLogger("sheafy")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
    return logger
