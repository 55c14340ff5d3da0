"""
Configuration for sheafy: host settings plus the per-project sheafy.toml.

Settings come from the command line. ``sheafy.toml`` lives in the project
root under a ``[sheafy]`` table; its ``use_gitignore`` overrides the host
setting, its other fields fall back to documented defaults.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .core import SHEAFY_TOML_FILENAME, VCS_DIR, ExportRequest
from .errors import ConfigFileError
from .sinks import Destination

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_NAME = "project_bundle.md"
DEFAULT_WORKING_DIR = "."
DEFAULT_FORMAT_TEMPLATE = "### {relpath}\n\n```{lang}\n{content}\n````\n"
TOML_SECTION = "sheafy"

DEFAULT_TOML_TEMPLATE = """\
[sheafy]
# File name of the bundle written by the rootDir / workingDir destinations.
bundle_name = "project_bundle.md"

# Directory for the workingDir destination, relative to this file.
working_dir = "."

# Overrides --no-gitignore when set.
# use_gitignore = true

# Extra gitignore-style patterns, one per line. Blank lines and lines
# starting with '#' are skipped.
ignore_patterns = \"\"\"
.vscode/
.idea/
*.code-workspace
.DS_Store
node_modules/
package-lock.json
yarn.lock
*.log
dist/
build/
out/
target/
\"\"\"

# Text placed before and after the file sections.
prologue = ""
epilogue = ""
"""


@dataclass(frozen=True)
class HostSettings:
    respect_gitignore: bool = True
    export_destinations: Tuple[Destination, ...] = (Destination.CLIPBOARD,)
    export_format_template: str = DEFAULT_FORMAT_TEMPLATE
    relativize_to_clicked_folder: bool = False


@dataclass(frozen=True)
class TomlConfig:
    bundle_name: Optional[str] = None
    working_dir: Optional[str] = None
    use_gitignore: Optional[bool] = None
    ignore_patterns: Optional[str] = None
    prologue: Optional[str] = None
    epilogue: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TomlConfig":
        """Build from the ``[sheafy]`` table, rejecting wrongly typed values."""
        values = {}
        for name in ("bundle_name", "working_dir", "ignore_patterns", "prologue", "epilogue"):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise ConfigFileError(f"'{name}' must be a string, got {type(value).__name__}")
            values[name] = value
        use_gitignore = data.get("use_gitignore")
        if use_gitignore is not None and not isinstance(use_gitignore, bool):
            raise ConfigFileError(
                f"'use_gitignore' must be a boolean, got {type(use_gitignore).__name__}"
            )
        return cls(use_gitignore=use_gitignore, **values)


@dataclass(frozen=True)
class MergedConfig:
    root: Path
    bundle_name: str
    working_dir: Path
    use_gitignore: bool
    ignore_patterns: Tuple[str, ...]
    prologue: str
    epilogue: str
    destinations: Tuple[Destination, ...]
    template: str
    relativize_to_clicked_folder: bool
    settings: HostSettings = field(default_factory=HostSettings)
    toml: Optional[TomlConfig] = None

    def to_request(
        self,
        start: Optional[Path] = None,
        destinations: Optional[Sequence[Destination]] = None,
    ) -> ExportRequest:
        return ExportRequest(
            root=self.root,
            start=start if start is not None else self.root,
            destinations=tuple(destinations) if destinations else self.destinations,
            template=self.template,
            bundle_name=self.bundle_name,
            working_dir=self.working_dir,
            use_gitignore=self.use_gitignore,
            extra_ignore_patterns=self.ignore_patterns,
            prologue=self.prologue,
            epilogue=self.epilogue,
            relativize_to_start=self.relativize_to_clicked_folder,
        )


def parse_ignore_patterns(raw: Optional[str]) -> List[str]:
    """Split a multi-line pattern string, dropping blanks and ``#`` comments."""
    if not raw:
        return []
    return [
        ln.strip()
        for ln in raw.splitlines()
        if ln.strip() and not ln.strip().startswith("#")
    ]


def load_toml_config(root: Path) -> Optional[TomlConfig]:
    """Read ``<root>/sheafy.toml``.

    A missing file returns ``None`` quietly. A file that is present but
    unreadable or malformed logs a warning and also returns ``None``.
    """
    toml_path = root / SHEAFY_TOML_FILENAME
    try:
        with toml_path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError:
        return None
    except tomllib.TOMLDecodeError as e:
        logger.warning("Error parsing %s: %s. Using defaults.", toml_path, e)
        return None
    except OSError as e:
        logger.warning("Error reading %s: %s. Using defaults.", toml_path, e)
        return None

    section = data.get(TOML_SECTION)
    if not isinstance(section, dict):
        logger.warning(
            "%s found, but is missing a [%s] section. Using defaults.",
            SHEAFY_TOML_FILENAME,
            TOML_SECTION,
        )
        return None
    try:
        return TomlConfig.from_mapping(section)
    except ConfigFileError as e:
        logger.warning("Invalid %s: %s. Using defaults.", toml_path, e)
        return None


def _dedupe(destinations: Sequence[Destination]) -> Tuple[Destination, ...]:
    seen: List[Destination] = []
    for dest in destinations:
        dest = Destination(dest)
        if dest not in seen:
            seen.append(dest)
    return tuple(seen)


def merge_config(
    root: Path,
    settings: Optional[HostSettings] = None,
    toml: Optional[TomlConfig] = None,
) -> MergedConfig:
    settings = settings if settings is not None else HostSettings()
    root = root.resolve()
    toml_cfg = toml if toml is not None else TomlConfig()

    use_gitignore = settings.respect_gitignore
    if toml_cfg.use_gitignore is not None:
        use_gitignore = toml_cfg.use_gitignore

    destinations = _dedupe(settings.export_destinations) or (Destination.CLIPBOARD,)

    return MergedConfig(
        root=root,
        bundle_name=toml_cfg.bundle_name or DEFAULT_BUNDLE_NAME,
        working_dir=(root / (toml_cfg.working_dir or DEFAULT_WORKING_DIR)).resolve(),
        use_gitignore=use_gitignore,
        ignore_patterns=tuple(parse_ignore_patterns(toml_cfg.ignore_patterns)),
        prologue=toml_cfg.prologue or "",
        epilogue=toml_cfg.epilogue or "",
        destinations=destinations,
        template=settings.export_format_template,
        relativize_to_clicked_folder=settings.relativize_to_clicked_folder,
        settings=settings,
        toml=toml,
    )


def load_config(root: Path, settings: Optional[HostSettings] = None) -> MergedConfig:
    root = root.resolve()
    return merge_config(root, settings, load_toml_config(root))


def find_project_root(path: Path) -> Path:
    """Nearest ancestor of *path* (inclusive) holding sheafy.toml or .git.

    Without such a marker the current directory is used when it contains
    *path*, otherwise *path* itself.
    """
    path = path.resolve()
    for candidate in (path, *path.parents):
        if (candidate / SHEAFY_TOML_FILENAME).is_file() or (candidate / VCS_DIR).exists():
            return candidate
    cwd = Path.cwd().resolve()
    if path == cwd or cwd in path.parents:
        return cwd
    return path


def initialize_config(root: Path) -> Tuple[bool, Path]:
    """Write the default sheafy.toml into *root* unless one exists.

    Returns ``(created, path)``.
    """
    toml_path = root / SHEAFY_TOML_FILENAME
    try:
        with toml_path.open("x", encoding="utf-8", newline="\n") as fh:
            fh.write(DEFAULT_TOML_TEMPLATE)
    except FileExistsError:
        return False, toml_path
    except OSError as e:
        raise ConfigFileError(f"Failed to create {SHEAFY_TOML_FILENAME}: {e}")
    return True, toml_path
