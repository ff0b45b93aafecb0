"""Terminal User Interface for Crossplane Explorer.

Usage:
    from crossplane_explorer.tui import Colors
    from crossplane_explorer.tui.apps.explorer import ExplorerApp
"""

from crossplane_explorer.tui.theme import Colors

__all__ = [
    "Colors",
]
