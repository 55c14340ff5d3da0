"""Tests for directory traversal."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from helpers import make_tree
from sheafy.core import scan_files
from sheafy.errors import ExportCancelled, InvalidRootError
from sheafy.progress import CancellationToken


class ScanFilesTests(unittest.TestCase):
    def test_returns_files_in_name_order_per_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            make_tree(root, {"b.txt": "b", "a/z.txt": "z", "a/m.txt": "m", "c.txt": "c"})

            rels = [p.relative_to(root).as_posix() for p in scan_files(root)]

            self.assertEqual(rels, ["a/m.txt", "a/z.txt", "b.txt", "c.txt"])

    def test_prunes_heavy_directories_at_any_depth(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            make_tree(
                root,
                {
                    ".git/HEAD": "ref",
                    "node_modules/x/index.js": "x",
                    "pkg/dist/out.js": "o",
                    "pkg/target/a.class": "a",
                    "pkg/build/b.o": "b",
                    "pkg/src/main.rs": "fn main() {}",
                },
            )

            rels = [p.relative_to(root).as_posix() for p in scan_files(root)]

            self.assertEqual(rels, ["pkg/src/main.rs"])

    def test_unlistable_directory_is_skipped_with_warning(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            make_tree(root, {"locked/secret.txt": "s", "open/ok.txt": "ok"})
            real_scandir = os.scandir

            def fake_scandir(path):
                if Path(path).name == "locked":
                    raise PermissionError(13, "Permission denied", str(path))
                return real_scandir(path)

            with mock.patch("sheafy.core.os.scandir", side_effect=fake_scandir):
                with self.assertLogs("sheafy.core", level="WARNING") as logs:
                    found = scan_files(root)

            self.assertEqual([p.name for p in found], ["ok.txt"])
            self.assertIn("Could not read directory", logs.output[0])

    def test_missing_root_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(InvalidRootError):
                scan_files(Path(tmp) / "nope")

    def test_file_root_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "file.txt"
            target.write_text("x", encoding="utf-8")
            with self.assertRaises(InvalidRootError):
                scan_files(target)

    def test_cancelled_token_aborts_before_any_read(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            make_tree(root, {"a.txt": "a"})
            token = CancellationToken()
            token.cancel()
            with self.assertRaises(ExportCancelled):
                scan_files(root, token)

    def test_cancellation_during_walk_returns_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            make_tree(root, {"a/1.txt": "1", "b/2.txt": "2", "c/3.txt": "3"})
            token = CancellationToken()
            real_scandir = os.scandir

            def cancelling_scandir(path):
                if Path(path).name == "a":
                    token.cancel()
                return real_scandir(path)

            with mock.patch("sheafy.core.os.scandir", side_effect=cancelling_scandir):
                with self.assertRaises(ExportCancelled):
                    scan_files(root, token)


if __name__ == "__main__":
    unittest.main()
