"""Editor launch helper for bundle views and sheafy.toml.

Looks up ``$VISUAL`` then ``$EDITOR``. Returns an error message string instead
of raising so callers decide how loudly to fail.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional


def editor_command() -> Optional[List[str]]:
    for var in ("VISUAL", "EDITOR"):
        value = os.environ.get(var, "").strip()
        if not value:
            continue
        cmd = shlex.split(value)
        if cmd:
            return cmd
    return None


def launch_editor(target: Path, wait: bool = True) -> Optional[str]:
    """Open *target* in the user's editor.

    With ``wait=False`` the editor is started in the background and control
    returns immediately.
    """
    cmd = editor_command()
    if cmd is None:
        return "Cannot open editor: $EDITOR is not set."
    try:
        if wait:
            subprocess.run([*cmd, str(target)], check=False)
        else:
            subprocess.Popen([*cmd, str(target)])
    except OSError as exc:
        return f"Failed to launch editor: {exc}"
    return None
