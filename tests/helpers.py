"""Shared fixtures for building small project trees."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union


def make_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


class RecordingClipboard:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.copies: List[str] = []

    def __call__(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("clipboard unavailable")
        self.copies.append(text)
