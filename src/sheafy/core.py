"""
Core logic for sheafy: discovery, filtering, templating and assembly.

A run goes scan -> resolve paths -> filter -> render -> assemble -> dispatch.
"""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pathspec

from .errors import InvalidRootError
from .progress import CancellationToken, ProgressObserver, null_progress
from .sinks import Destination, ExportResult, SinkDispatcher, SinkTarget

logger = logging.getLogger(__name__)

# Defaults & helpers
SHEAFY_TOML_FILENAME = "sheafy.toml"
VCS_DIR = ".git"

# never descended into, whatever the ignore rules say
PRUNED_DIRS = frozenset({VCS_DIR, "node_modules", "target", "build", "dist"})

READ_ERROR_MARKER = "### {relpath}\n\n--- ERROR: Could not read file: {error} ---\n"

_LANG_MAP: Dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescriptreact",
    "js": "javascript",
    "jsx": "javascriptreact",
    "py": "python",
    "java": "java",
    "cs": "csharp",
    "cpp": "cpp",
    "h": "cpp",
    "hpp": "cpp",
    "c": "c",
    "go": "go",
    "rb": "ruby",
    "php": "php",
    "html": "html",
    "htm": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "less": "less",
    "json": "json",
    "xml": "xml",
    "md": "markdown",
    "sh": "shellscript",
    "bash": "shellscript",
    "zsh": "shellscript",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "sql": "sql",
    "swift": "swift",
    "kt": "kotlin",
    "rs": "rust",
    "lua": "lua",
    "pl": "perl",
    "scala": "scala",
    "vb": "vb",
    "dart": "dart",
    "dockerfile": "dockerfile",
    "graphql": "graphql",
    "vue": "vue",
    "svelte": "svelte",
}

_PLACEHOLDER_RE = re.compile(r"\{(relpath|lang|content)\}")


def language_id(path: Path | str) -> str:
    ext = os.path.splitext(str(path))[1][1:].lower()
    return _LANG_MAP.get(ext) or ext or "plaintext"


def _posix_rel(path: Path, base: Path) -> str:
    return Path(os.path.relpath(path, base)).as_posix()


# Data model

@dataclass(frozen=True)
class ExportRequest:
    """Everything one export run needs, already merged from config."""

    root: Path
    start: Path
    destinations: Tuple[Destination, ...]
    template: str
    bundle_name: str
    working_dir: Path
    use_gitignore: bool = True
    extra_ignore_patterns: Tuple[str, ...] = ()
    prologue: str = ""
    epilogue: str = ""
    relativize_to_start: bool = False


@dataclass(frozen=True)
class DiscoveredFile:
    absolute_path: Path
    filter_rel: str
    template_rel: str


@dataclass
class ExportOutcome:
    results: List[ExportResult] = field(default_factory=list)
    file_count: int = 0
    text: str = ""


# Ignore rules

class IgnoreMatcher:
    """One compiled set of gitignore-style patterns.

    Patterns are evaluated in order and the last matching one wins, so a
    later ``!pattern`` re-includes what an earlier rule excluded.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self.patterns: List[str] = list(patterns)
        self._spec = _compile_patterns(self.patterns)

    def matches(self, rel_path: str) -> bool:
        return self._spec.match_file(rel_path)

    def __len__(self) -> int:
        return len(self.patterns)


def _compile_patterns(patterns: List[str]) -> "pathspec.PathSpec":
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    except ValueError:
        return _compile_valid_patterns(patterns)


def _compile_valid_patterns(patterns: List[str]) -> "pathspec.PathSpec":
    valid: List[str] = []
    for pattern in patterns:
        try:
            pathspec.PathSpec.from_lines("gitwildmatch", [pattern])
        except ValueError as e:
            logger.warning("Skipping invalid ignore pattern %r: %s", pattern, e)
            continue
        valid.append(pattern)
    return pathspec.PathSpec.from_lines("gitwildmatch", valid)


def load_gitignore(root: Path) -> IgnoreMatcher:
    """Compile ``<root>/.gitignore``; a missing file gives an empty matcher."""
    gitignore_path = root / ".gitignore"
    try:
        with gitignore_path.open("r", encoding="utf-8") as fh:
            return IgnoreMatcher(line.rstrip("\r\n") for line in fh)
    except FileNotFoundError:
        return IgnoreMatcher()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read .gitignore at %s: %s", gitignore_path, e)
        return IgnoreMatcher()


def tool_seed_patterns(root: Path, working_dir: Path, bundle_name: str) -> List[str]:
    """Patterns that keep sheafy's own files out of the bundle."""
    in_root = _posix_rel(root / bundle_name, root)
    seeds = [in_root]
    in_working_dir = _posix_rel(working_dir / bundle_name, root)
    if in_working_dir != in_root:
        seeds.append(in_working_dir)
    seeds.append(_posix_rel(root / SHEAFY_TOML_FILENAME, root))
    return seeds


class ExportFilter:
    """Holds the VCS and tool matchers side by side.

    A path is excluded when it sits under ``.git`` or when either matcher
    matches it. The VCS matcher is ``None`` when .gitignore is not honoured.
    """

    def __init__(self, tool: IgnoreMatcher, vcs: Optional[IgnoreMatcher] = None) -> None:
        self.tool = tool
        self.vcs = vcs

    @classmethod
    def for_request(cls, request: ExportRequest, root: Path, working_dir: Path) -> "ExportFilter":
        seeds = tool_seed_patterns(root, working_dir, request.bundle_name)
        tool = IgnoreMatcher([*seeds, *request.extra_ignore_patterns])
        vcs = load_gitignore(root) if request.use_gitignore else None
        return cls(tool, vcs)

    def is_excluded(self, filter_rel: str) -> bool:
        if filter_rel == VCS_DIR or filter_rel.startswith(VCS_DIR + "/"):
            return True
        if self.vcs is not None and self.vcs.matches(filter_rel):
            return True
        return self.tool.matches(filter_rel)


# File discovery

def scan_files(root: Path, token: Optional[CancellationToken] = None) -> List[Path]:
    """Recursively collect every regular file under *root*.

    Entries are visited in name order so repeated scans agree. Directories in
    :data:`PRUNED_DIRS` are skipped, as are directories that cannot be listed.
    """
    try:
        root = root.resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve root path '{root}': {e}")
    if not root.exists():
        raise InvalidRootError(f"Root directory '{root}' does not exist")
    if not root.is_dir():
        raise InvalidRootError(f"Root path '{root}' is not a directory")

    found: List[Path] = []
    _walk(root, found, token)
    return found


def _walk(directory: Path, found: List[Path], token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        logger.warning("Could not read directory %s: %s", directory, e)
        return

    for entry in entries:
        if token is not None:
            token.raise_if_cancelled()
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in PRUNED_DIRS:
                    continue
                _walk(Path(entry.path), found, token)
            elif entry.is_file():
                found.append(Path(entry.path))
        except OSError as e:
            logger.warning("Could not inspect %s: %s", entry.path, e)


def resolve_paths(
    path: Path,
    root: Path,
    start: Path,
    relativize_to_start: bool = False,
) -> DiscoveredFile:
    """Compute the filter path (root-relative) and the displayed path.

    The displayed path is start-relative only for a sub-folder export with
    *relativize_to_start* set; otherwise it is root-relative too.
    """
    filter_rel = _posix_rel(path, root)
    if start != root and relativize_to_start:
        template_rel = _posix_rel(path, start)
    else:
        template_rel = filter_rel
    return DiscoveredFile(path, filter_rel, template_rel)


# Rendering

def render_template(template: str, relpath: str, lang: str, content: str) -> str:
    values = {"relpath": relpath, "lang": lang, "content": content}
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def read_text(path: Path) -> str:
    return path.read_bytes().decode("utf-8")


def render_file(
    discovered: DiscoveredFile,
    template: str,
    token: Optional[CancellationToken] = None,
) -> str:
    """Render one file, or an inline error marker if it cannot be read."""
    if token is not None:
        token.raise_if_cancelled()
    try:
        content = read_text(discovered.absolute_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read file %s: %s", discovered.absolute_path, e)
        return READ_ERROR_MARKER.format(relpath=discovered.template_rel, error=e)
    lang = language_id(discovered.absolute_path)
    return render_template(template, discovered.template_rel, lang, content)


def render_all(
    files: Sequence[DiscoveredFile],
    template: str,
    token: Optional[CancellationToken] = None,
    progress: ProgressObserver = null_progress,
    max_workers: Optional[int] = None,
) -> List[str]:
    """Render *files* concurrently, returning segments in input order."""
    if not files:
        return []
    segments: List[str] = []
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sheafy-read") as pool:
        futures: List[Future] = [pool.submit(render_file, f, template, token) for f in files]
        try:
            for idx, fut in enumerate(futures, 1):
                segments.append(fut.result())
                progress("render", idx / len(futures))
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise
    return segments


def assemble(prologue: str, segments: Iterable[str], epilogue: str) -> str:
    parts: List[str] = []
    if prologue:
        parts.append(prologue)
    parts.extend(segments)
    if epilogue:
        parts.append(epilogue)
    return "\n\n".join(parts)


# Pipeline

def _resolve_dir(path: Path, label: str) -> Path:
    try:
        resolved = Path(path).resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidRootError(f"Could not resolve {label} '{path}': {e}")
    if not resolved.is_dir():
        raise InvalidRootError(f"{label.capitalize()} '{resolved}' is not a directory")
    return resolved


def collect_files(
    request: ExportRequest,
    root: Path,
    start: Path,
    working_dir: Path,
    token: Optional[CancellationToken] = None,
) -> List[DiscoveredFile]:
    """Scan from *start* and keep the files no ignore rule excludes."""
    export_filter = ExportFilter.for_request(request, root, working_dir)
    kept: List[DiscoveredFile] = []
    for path in scan_files(start, token):
        if token is not None:
            token.raise_if_cancelled()
        discovered = resolve_paths(path, root, start, request.relativize_to_start)
        if export_filter.is_excluded(discovered.filter_rel):
            logger.debug("Ignored %s", discovered.filter_rel)
            continue
        kept.append(discovered)
    return kept


def export_content(
    request: ExportRequest,
    token: Optional[CancellationToken] = None,
    progress: ProgressObserver = null_progress,
    dispatcher: Optional[SinkDispatcher] = None,
    max_workers: Optional[int] = None,
) -> ExportOutcome:
    """Run scan -> filter -> render -> assemble -> dispatch for *request*.

    Raises :class:`InvalidRootError` for a bad root or start directory and
    :class:`ExportCancelled` when *token* is cancelled. Destination failures
    come back as failed results instead.
    """
    token = token if token is not None else CancellationToken()
    root = _resolve_dir(request.root, "root directory")
    start = _resolve_dir(request.start, "start path")
    if start != root and root not in start.parents:
        raise InvalidRootError(f"Start path '{start}' is not inside root '{root}'")
    working_dir = (root / request.working_dir).resolve()

    progress("scan", 0.0)
    files = collect_files(request, root, start, working_dir, token)
    progress("scan", 1.0)
    logger.info("%d files kept under %s", len(files), start)

    segments = render_all(files, request.template, token, progress, max_workers)
    text = assemble(request.prologue, segments, request.epilogue)

    token.raise_if_cancelled()
    dispatcher = dispatcher if dispatcher is not None else SinkDispatcher()
    target = SinkTarget(root=root, working_dir=working_dir, bundle_name=request.bundle_name)
    results = dispatcher.dispatch(text, request.destinations, target, token, progress)
    progress("done", 1.0)
    return ExportOutcome(results=results, file_count=len(files), text=text)
