"""ExplorerShell backed by Textual notifications and the output panel."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from textual.app import App

    from crossplane_explorer.tui.apps.explorer.widgets import OutputPanel, PanelSink

logger = structlog.get_logger()


class TuiShell:
    """Shell for the interactive explorer.

    Session documents are recorded here and edited by the screen that
    requested them (the editor needs the terminal, so the app is
    suspended around it).

    Args:
        app: Running Textual app used for notifications.
        panel: Output panel hosting sinks; set once the screen is mounted.
    """

    def __init__(self, app: App[None], panel: OutputPanel | None = None) -> None:
        self._app = app
        self.panel = panel
        self.opened: dict[Path, bool] = {}

    def show_info(self, message: str) -> None:
        self._app.notify(message, severity="information")

    def show_warning(self, message: str) -> None:
        self._app.notify(message, severity="warning", timeout=8)

    def show_error(self, message: str) -> None:
        logger.debug("tui_error_shown", message=message)
        self._app.notify(message, severity="error", timeout=10)

    def open_document(self, path: Path, *, read_only: bool) -> None:
        self.opened[path] = read_only

    def close_document(self, path: Path) -> None:
        self.opened.pop(path, None)

    def create_sink(self, title: str) -> PanelSink:
        if self.panel is None:
            raise RuntimeError("Output panel is not mounted")
        return self.panel.create_sink(title)
