"""Theme constants and output line styling for the TUI.

Usage:
    from crossplane_explorer.tui.theme import Colors, line_style

    DEFAULT_CSS = f'''
    .pane-title {{ color: {Colors.PRIMARY}; }}
    '''

    log.write(Text(line, style=line_style(line)))
"""

from __future__ import annotations


class Colors:
    """Color constants for TUI theming.

    Semantic colors map to Textual CSS variables; diff colors are hex
    values usable in Rich styles.
    """

    SUCCESS = "$success"
    WARNING = "$warning"
    ERROR = "$error"
    PRIMARY = "$primary"
    ACCENT = "$accent"
    SURFACE = "$surface"

    DIFF_ADD = "#22c55e"
    DIFF_REMOVE = "#ef4444"
    DIFF_CHANGE = "#eab308"
    DIFF_CONTEXT = "#6b7280"

    MODAL_SURFACE = "$surface"


STATUS_COLORS = {
    "Healthy": Colors.DIFF_ADD,
    "Synced": Colors.DIFF_ADD,
    "Running": Colors.DIFF_ADD,
    "deployed": Colors.DIFF_ADD,
    "Unhealthy": Colors.DIFF_REMOVE,
    "NotSynced": Colors.DIFF_REMOVE,
    "Failed": Colors.DIFF_REMOVE,
    "failed": Colors.DIFF_REMOVE,
}


def line_style(line: str) -> str:
    """Rich style for one line of watch, log or trace output."""
    stripped = line.lstrip()
    if line.startswith("[ERROR]") or line.startswith("Error:"):
        return f"bold {Colors.DIFF_REMOVE}"
    if line.startswith("[INFO]"):
        return "cyan"
    if line.startswith("#"):
        return f"bold {Colors.DIFF_CONTEXT}"
    if stripped.startswith("~ "):
        return Colors.DIFF_CHANGE
    if stripped.startswith("+ "):
        return Colors.DIFF_ADD
    if stripped.startswith("- "):
        return Colors.DIFF_REMOVE
    return ""


def status_color(status: str | None) -> str:
    """Color for a derived resource or release status."""
    return STATUS_COLORS.get(status or "", Colors.DIFF_CHANGE)
