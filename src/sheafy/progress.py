"""
Cancellation and progress reporting for export runs.

A run threads one :class:`CancellationToken` through directory reads, file
reads and destination writes. Progress is reported to an observer callable
receiving ``(phase, fraction)``; :func:`null_progress` ignores everything.
"""

from __future__ import annotations

import sys
import threading
from typing import Callable, Optional, TextIO

from colorama import Fore, Style

from .errors import ExportCancelled

ProgressObserver = Callable[[str, float], None]


def null_progress(phase: str, fraction: float) -> None:
    return None


class CancellationToken:
    """Cooperative cancellation flag shared by every stage of a run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExportCancelled("Export cancelled")


class ConsoleProgress:
    """Print coalesced progress lines to *stream*.

    A line is printed when the phase changes or the fraction has advanced by
    at least *step* since the last line for that phase.
    """

    def __init__(self, stream: Optional[TextIO] = None, step: float = 0.1) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.step = step
        self._phase: Optional[str] = None
        self._last = 0.0

    def __call__(self, phase: str, fraction: float) -> None:
        fraction = min(max(fraction, 0.0), 1.0)
        if phase == self._phase and fraction - self._last < self.step and fraction < 1.0:
            return
        if phase == self._phase and fraction == self._last:
            return
        self._phase = phase
        self._last = fraction
        msg = f"[sheafy] {phase}: {fraction:4.0%}"
        if self.stream.isatty():
            msg = Style.DIM + Fore.CYAN + msg + Style.RESET_ALL
        print(msg, file=self.stream)
