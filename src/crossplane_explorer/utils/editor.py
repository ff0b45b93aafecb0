"""Editor configuration and launching.

View/edit sessions are local YAML files; both the CLI and the TUI hand
them to the user's editor through this module.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path

FALLBACK_EDITOR = "vi"


def get_editor(configured: str | None = None) -> str:
    """Get the configured editor command.

    Priority order:
    1. ``default_editor`` from ~/.config/xpx/config.yaml (passed in)
    2. XPX_DEFAULT_EDITOR environment variable
    3. EDITOR environment variable
    4. VISUAL environment variable
    5. "vi" fallback

    Returns:
        Editor command string (e.g., "vim", "code --wait", "nano").
    """
    return (
        configured
        or os.environ.get("XPX_DEFAULT_EDITOR")
        or os.environ.get("EDITOR")
        or os.environ.get("VISUAL")
        or FALLBACK_EDITOR
    )


def open_in_editor(path: Path, editor: str | None = None) -> int:
    """Run the editor on ``path`` and wait for it to exit.

    Returns:
        The editor's exit code.

    Raises:
        OSError: If the editor executable cannot be started.
    """
    command = [*shlex.split(get_editor(editor)), str(path)]
    return subprocess.run(command, check=False).returncode
