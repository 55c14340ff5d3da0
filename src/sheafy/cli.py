"""
CLI entrypoint for sheafy package.

Three subcommands: ``folder`` (export a folder to the clipboard), ``project``
(export the project root to the configured destinations) and ``init`` (write
a default sheafy.toml).
"""
import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from colorama import Fore, Style

from . import __version__
from .config import (
    DEFAULT_FORMAT_TEMPLATE,
    SHEAFY_TOML_FILENAME,
    HostSettings,
    find_project_root,
    initialize_config,
    load_config,
)
from .core import export_content
from .editor import launch_editor
from .errors import ExportCancelled, SheafyError
from .log import setup_logging
from .progress import CancellationToken, ConsoleProgress, null_progress
from .sinks import Destination, ExportResult

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


@dataclass
class Summary:
    success: Optional[str] = None
    error: Optional[str] = None
    notice: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def summarize_results(
    results: Sequence[ExportResult], operation: str, file_count: int = -1
) -> Summary:
    """Fold per-destination results into one success and one error message."""
    successes: List[str] = []
    errors: List[str] = []
    for result in results:
        if not result.success:
            errors.append(f"Failed to export to {result.kind.value}: {result.message}")
        elif result.kind is Destination.CLIPBOARD:
            successes.append("Copied to clipboard.")
        elif result.kind is Destination.TEMP_TAB:
            successes.append("Opened in a new editor view.")
        else:
            successes.append(f"Written to file: {result.file_path}")

    summary = Summary()
    if successes:
        summary.success = f"{operation} successful! {' '.join(successes)}"
    if errors:
        summary.error = f"{operation} encountered errors. {' '.join(errors)}"
    if not results:
        summary.notice = (
            f"{operation} completed, but no output was generated "
            "based on current settings."
        )
    elif file_count == 0:
        summary.notice = f"{operation} completed, but no files matched the current settings."
    return summary


def _echo(msg: str, color: str = "", stream: Optional[TextIO] = None) -> None:
    stream = stream if stream is not None else sys.stdout
    if color and stream.isatty():
        msg = color + msg + Style.RESET_ALL
    print(msg, file=stream)


def _report(summary: Summary) -> int:
    if summary.success:
        _echo(summary.success, Fore.GREEN)
    if summary.error:
        _echo(summary.error, Fore.RED, sys.stderr)
    if summary.notice:
        _echo(summary.notice, Fore.YELLOW, sys.stderr)
    return EXIT_OK if summary.ok else EXIT_ERROR


def _settings_from_args(ns: argparse.Namespace) -> HostSettings:
    return HostSettings(
        respect_gitignore=not ns.no_gitignore,
        export_destinations=tuple(Destination(d) for d in getattr(ns, "dest", None) or ()),
        export_format_template=ns.template,
        relativize_to_clicked_folder=ns.relative_to_folder,
    )


def _run_export(
    ns: argparse.Namespace,
    root: Path,
    start: Path,
    operation: str,
    destinations: Optional[List[Destination]] = None,
) -> int:
    token = CancellationToken()
    progress = ConsoleProgress() if ns.verbose and not ns.quiet else null_progress
    try:
        progress("config", 0.0)
        config = load_config(root, _settings_from_args(ns))
        request = config.to_request(start=start, destinations=destinations)
        progress("config", 1.0)
        outcome = export_content(request, token=token, progress=progress, max_workers=ns.workers)
    except (KeyboardInterrupt, ExportCancelled):
        token.cancel()
        _echo(f"{operation} cancelled.", Fore.YELLOW, sys.stderr)
        return EXIT_CANCELLED
    except SheafyError as e:
        _echo(f"Error: {e}", Fore.RED, sys.stderr)
        return EXIT_ERROR
    return _report(summarize_results(outcome.results, operation, outcome.file_count))


# Subcommands

def _cmd_folder(ns: argparse.Namespace) -> int:
    target = ns.path.resolve()
    root = ns.root.resolve() if ns.root else find_project_root(target)
    return _run_export(
        ns, root, target, "Folder export to clipboard", destinations=[Destination.CLIPBOARD]
    )


def _cmd_project(ns: argparse.Namespace) -> int:
    root = ns.root.resolve() if ns.root else find_project_root(Path.cwd())
    return _run_export(ns, root, root, "Project export")


def _cmd_init(ns: argparse.Namespace) -> int:
    root = ns.root.resolve() if ns.root else Path.cwd().resolve()
    try:
        created, toml_path = initialize_config(root)
    except SheafyError as e:
        _echo(f"Error: {e}", Fore.RED, sys.stderr)
        return EXIT_ERROR
    if not created:
        _echo(f"{SHEAFY_TOML_FILENAME} already exists at {toml_path}.")
        return EXIT_OK
    _echo(f"{SHEAFY_TOML_FILENAME} created successfully at {toml_path}.", Fore.GREEN)
    if not ns.no_open:
        error = launch_editor(toml_path)
        if error and ns.verbose:
            _echo(error, Fore.YELLOW, sys.stderr)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", type=Path, help="Project root (default: auto-detected)")
    common.add_argument("-v", "--verbose", action="count", default=0, help="Verbose logging")
    common.add_argument("-q", "--quiet", action="store_true", help="Only log errors")

    export = argparse.ArgumentParser(add_help=False)
    export.add_argument(
        "--template",
        default=DEFAULT_FORMAT_TEMPLATE,
        help="Per-file template; placeholders {relpath}, {lang}, {content}",
    )
    export.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Do not apply .gitignore (sheafy.toml use_gitignore still wins)",
    )
    export.add_argument(
        "--relative-to-folder",
        action="store_true",
        help="Show {relpath} relative to the exported folder instead of the root",
    )
    export.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used to read files (default: Python's choice)",
    )

    p = argparse.ArgumentParser(
        prog="sheafy",
        description="Bundle a folder or project into one text document.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    folder = sub.add_parser(
        "folder", parents=[common, export], help="Export a folder to the clipboard"
    )
    folder.add_argument("path", type=Path, help="Folder to export")
    folder.set_defaults(func=_cmd_folder)

    project = sub.add_parser(
        "project", parents=[common, export], help="Export the whole project"
    )
    project.add_argument(
        "--dest",
        action="append",
        choices=[d.value for d in Destination],
        help="Destination, repeatable (default: clipboard)",
    )
    project.set_defaults(func=_cmd_project)

    init = sub.add_parser("init", parents=[common], help=f"Create a default {SHEAFY_TOML_FILENAME}")
    init.add_argument("--no-open", action="store_true", help="Do not open the new file")
    init.set_defaults(func=_cmd_init)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)
    setup_logging(ns.verbose, ns.quiet)
    try:
        return ns.func(ns)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
