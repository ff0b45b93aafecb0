"""Main Textual application for browsing Crossplane and Helm resources.

This module provides the ExplorerApp, the entry point for the
interactive explorer (``xpx tui``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from crossplane_explorer.services.explorer.context import ExplorerContext
from crossplane_explorer.tui.apps.explorer.screens import ExplorerScreen
from crossplane_explorer.tui.apps.explorer.shell import TuiShell

if TYPE_CHECKING:
    from crossplane_explorer.core.config import ExplorerConfig


class ExplorerApp(App[None]):
    """TUI application for the Crossplane resource explorer.

    Owns the ExplorerContext; every watch, log tail and session it
    started is shut down when the app exits.

    Args:
        config: Explorer configuration.
    """

    TITLE = "Crossplane Explorer"

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("question_mark", "help", "Help", show=True),
    ]

    def __init__(self, config: ExplorerConfig) -> None:
        super().__init__()
        self.shell = TuiShell(self)
        self.context = ExplorerContext(config, self.shell)

    def compose(self) -> ComposeResult:
        """Compose the app layout."""
        yield Header()
        yield Footer()

    def on_mount(self) -> None:
        """Push the explorer screen on mount."""
        self.push_screen(ExplorerScreen(self.context, self.shell))

    async def action_quit(self) -> None:
        """Quit the application."""
        self.exit()

    def action_help(self) -> None:
        """Show keyboard shortcut help."""
        self.notify(
            "v/e: view/edit | w: field watch | l: logs | t: trace | p/P: pause/resume | "
            "d: delete | k/R: kill/restart pod | D: debug | i: details | "
            "b/u: helm rollback/upgrade | o/O/x: outputs | r: refresh | q: quit",
            timeout=15,
        )

    def on_unmount(self) -> None:
        """Stop watches and tails and remove session files."""
        self.context.shutdown()
