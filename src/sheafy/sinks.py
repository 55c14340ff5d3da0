"""
Export destinations for an assembled bundle.

Each destination kind has one handler. The dispatcher attempts every
requested destination in order and turns any handler failure into a failed
:class:`ExportResult`, so one broken destination never stops the others.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pyperclip

from .editor import launch_editor
from .errors import OutputError
from .progress import CancellationToken, ProgressObserver, null_progress

logger = logging.getLogger(__name__)


class Destination(str, Enum):
    CLIPBOARD = "clipboard"
    TEMP_TAB = "tempTab"
    ROOT_DIR = "rootDir"
    WORKING_DIR = "workingDir"


@dataclass(frozen=True)
class ExportResult:
    kind: Destination
    success: bool
    file_path: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class SinkTarget:
    """Where file destinations write: both directories are absolute."""

    root: Path
    working_dir: Path
    bundle_name: str


def open_transient_view(text: str) -> Path:
    """Write *text* to a fresh markdown temp file and open it without waiting."""
    fd, name = tempfile.mkstemp(prefix="sheafy-", suffix=".md")
    with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    path = Path(name)
    error = launch_editor(path, wait=False)
    if error:
        path.unlink()
        raise OutputError(error)
    return path


class SinkDispatcher:
    def __init__(
        self,
        clipboard: Optional[Callable[[str], None]] = None,
        view_opener: Optional[Callable[[str], object]] = None,
    ) -> None:
        self._clipboard = clipboard
        self._view_opener = view_opener
        self._handlers: Dict[Destination, Callable[[str, SinkTarget], ExportResult]] = {
            Destination.CLIPBOARD: self._to_clipboard,
            Destination.TEMP_TAB: self._to_view,
            Destination.ROOT_DIR: self._to_root_dir,
            Destination.WORKING_DIR: self._to_working_dir,
        }

    def dispatch(
        self,
        text: str,
        destinations: Sequence[Destination],
        target: SinkTarget,
        token: Optional[CancellationToken] = None,
        progress: ProgressObserver = null_progress,
    ) -> List[ExportResult]:
        """Send *text* to every destination, collecting one result each.

        Only cancellation escapes: it is checked before each destination, and
        destinations already written stay written.
        """
        results: List[ExportResult] = []
        total = len(destinations)
        for idx, dest in enumerate(destinations, 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                results.append(self._handlers[dest](text, target))
            except Exception as e:
                logger.error("Export to %s failed: %s", dest.value, e)
                results.append(ExportResult(dest, False, message=str(e)))
            progress("write", idx / total)
        return results

    # Handlers

    def _to_clipboard(self, text: str, target: SinkTarget) -> ExportResult:
        copy = self._clipboard if self._clipboard is not None else pyperclip.copy
        copy(text)
        logger.info("Copied %d characters to clipboard", len(text))
        return ExportResult(Destination.CLIPBOARD, True)

    def _to_view(self, text: str, target: SinkTarget) -> ExportResult:
        opener = self._view_opener if self._view_opener is not None else open_transient_view
        opened = opener(text)
        logger.info("Opened bundle view %s", opened)
        return ExportResult(Destination.TEMP_TAB, True)

    def _to_root_dir(self, text: str, target: SinkTarget) -> ExportResult:
        return self._write_bundle(Destination.ROOT_DIR, target.root, text, target)

    def _to_working_dir(self, text: str, target: SinkTarget) -> ExportResult:
        out_dir = target.working_dir
        if out_dir != target.root and not out_dir.is_dir():
            try:
                out_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error("Could not create working directory %s: %s", out_dir, e)
                return ExportResult(
                    Destination.WORKING_DIR,
                    False,
                    message=f"Failed to create working directory {out_dir}: {e}",
                )
        return self._write_bundle(Destination.WORKING_DIR, out_dir, text, target)

    def _write_bundle(
        self, kind: Destination, out_dir: Path, text: str, target: SinkTarget
    ) -> ExportResult:
        out_path = out_dir / target.bundle_name
        out_path.write_bytes(text.encode("utf-8"))
        rel = Path(os.path.relpath(out_path, target.root)).as_posix()
        logger.info("Wrote %s", out_path)
        return ExportResult(kind, True, file_path=rel or target.bundle_name)
