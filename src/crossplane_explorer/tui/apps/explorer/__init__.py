"""Crossplane Explorer TUI application.

Usage:
    from crossplane_explorer.tui.apps.explorer import ExplorerApp

    app = ExplorerApp(config=config)
    app.run()
"""

from crossplane_explorer.tui.apps.explorer.app import ExplorerApp

__all__ = ["ExplorerApp"]
