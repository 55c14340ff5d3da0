"""Tests for the sheafy command line."""

from __future__ import annotations

import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from helpers import make_tree
from sheafy.cli import EXIT_CANCELLED, EXIT_ERROR, EXIT_OK, main, summarize_results
from sheafy.sinks import Destination, ExportResult


class SummarizeResultsTests(unittest.TestCase):
    def test_successes_and_failures_are_aggregated(self) -> None:
        summary = summarize_results(
            [
                ExportResult(Destination.CLIPBOARD, False, message="no display"),
                ExportResult(Destination.ROOT_DIR, True, file_path="project_bundle.md"),
                ExportResult(Destination.TEMP_TAB, True),
            ],
            "Project export",
            file_count=3,
        )

        self.assertEqual(
            summary.success,
            "Project export successful! Written to file: project_bundle.md "
            "Opened in a new editor view.",
        )
        self.assertEqual(
            summary.error,
            "Project export encountered errors. Failed to export to clipboard: no display",
        )
        self.assertIsNone(summary.notice)
        self.assertFalse(summary.ok)

    def test_no_results_gives_neutral_notice(self) -> None:
        summary = summarize_results([], "Project export", file_count=5)
        self.assertIsNone(summary.success)
        self.assertIsNone(summary.error)
        self.assertIn("no output was generated", summary.notice)
        self.assertTrue(summary.ok)

    def test_no_matching_files_gives_neutral_notice(self) -> None:
        summary = summarize_results(
            [ExportResult(Destination.CLIPBOARD, True)], "Folder export", file_count=0
        )
        self.assertEqual(summary.success, "Folder export successful! Copied to clipboard.")
        self.assertIn("no files matched", summary.notice)


class MainTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self._patches = [
            mock.patch("sys.stdout", self.stdout),
            mock.patch("sys.stderr", self.stderr),
        ]
        for patch in self._patches:
            patch.start()

    def tearDown(self) -> None:
        for patch in reversed(self._patches):
            patch.stop()
        self._tmp.cleanup()

    def test_project_export_writes_bundle_file(self) -> None:
        make_tree(
            self.root,
            {
                "sheafy.toml": '[sheafy]\nbundle_name = "ctx.md"\nprologue = "Context"\n',
                "main.py": "print('hi')\n",
            },
        )

        code = main(["project", "--root", str(self.root), "--dest", "rootDir"])

        self.assertEqual(code, EXIT_OK)
        bundle = (self.root / "ctx.md").read_text(encoding="utf-8")
        self.assertEqual(bundle, "Context\n\n### main.py\n\n```python\nprint('hi')\n\n````\n")
        self.assertIn("Written to file: ctx.md", self.stdout.getvalue())

    def test_folder_export_goes_to_clipboard_only(self) -> None:
        make_tree(
            self.root,
            {
                "sheafy.toml": '[sheafy]\nworking_dir = "out"\n',
                "pkg/a.ts": "let a = 1;",
            },
        )

        with mock.patch("sheafy.sinks.pyperclip.copy") as copy:
            code = main(
                [
                    "folder",
                    str(self.root / "pkg"),
                    "--root",
                    str(self.root),
                    "--relative-to-folder",
                    "--template",
                    "{relpath}:{lang}:{content}",
                ]
            )

        self.assertEqual(code, EXIT_OK)
        copy.assert_called_once_with("a.ts:typescript:let a = 1;")
        self.assertFalse((self.root / "out").exists())
        self.assertIn("Copied to clipboard.", self.stdout.getvalue())

    def test_clipboard_failure_reports_error(self) -> None:
        make_tree(self.root, {"a.txt": "a"})

        with mock.patch("sheafy.sinks.pyperclip.copy", side_effect=RuntimeError("no display")):
            code = main(["project", "--root", str(self.root)])

        self.assertEqual(code, EXIT_ERROR)
        self.assertIn("Failed to export to clipboard: no display", self.stderr.getvalue())

    def test_missing_folder_is_an_error(self) -> None:
        code = main(["folder", str(self.root / "missing"), "--root", str(self.root)])
        self.assertEqual(code, EXIT_ERROR)
        self.assertIn("Error:", self.stderr.getvalue())

    def test_interrupt_reports_cancellation(self) -> None:
        make_tree(self.root, {"a.txt": "a"})
        with mock.patch("sheafy.cli.export_content", side_effect=KeyboardInterrupt):
            code = main(["project", "--root", str(self.root)])
        self.assertEqual(code, EXIT_CANCELLED)
        self.assertIn("Project export cancelled.", self.stderr.getvalue())

    def test_init_creates_then_reports_existing(self) -> None:
        code = main(["init", "--root", str(self.root), "--no-open"])
        self.assertEqual(code, EXIT_OK)
        self.assertTrue((self.root / "sheafy.toml").is_file())
        self.assertIn("created successfully", self.stdout.getvalue())

        code = main(["init", "--root", str(self.root), "--no-open"])
        self.assertEqual(code, EXIT_OK)
        self.assertIn("already exists", self.stdout.getvalue())

    def test_init_opens_new_file_in_editor(self) -> None:
        with mock.patch("sheafy.cli.launch_editor", return_value=None) as launch:
            main(["init", "--root", str(self.root)])
        launch.assert_called_once_with(self.root / "sheafy.toml")


if __name__ == "__main__":
    unittest.main()
