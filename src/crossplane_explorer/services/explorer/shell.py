"""Host shell boundary and temp-file storage.

Services never touch the terminal or the editor directly; they talk to
an ExplorerShell (notifications, documents, output sinks) supplied by
the CLI or TUI composition root.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Protocol

from crossplane_explorer.integrations.kubernetes.exceptions import CleanupError

TEMP_DIR_PREFIX = "crossplane-explorer-"


class OutputSink(Protocol):
    """Append-only text surface (a log pane or console stream)."""

    def append_line(self, text: str) -> None:
        """Append ``text`` followed by a newline."""
        ...

    def append(self, text: str) -> None:
        """Append ``text`` verbatim."""
        ...

    def show(self) -> None:
        """Bring the sink to the front."""
        ...

    def dispose(self) -> None:
        """Close the sink; later appends are ignored."""
        ...


class ExplorerShell(Protocol):
    """Operations the services need from the hosting interface."""

    def show_info(self, message: str) -> None:
        """Show an informational notification."""
        ...

    def show_warning(self, message: str) -> None:
        """Show a warning notification."""
        ...

    def show_error(self, message: str) -> None:
        """Show an error notification."""
        ...

    def open_document(self, path: Path, *, read_only: bool) -> None:
        """Open (or focus) a local document.

        Raises:
            OSError: If the document cannot be opened.
        """
        ...

    def close_document(self, path: Path) -> None:
        """Close the document backed by ``path`` if it is open."""
        ...

    def create_sink(self, title: str) -> OutputSink:
        """Create a new titled output sink."""
        ...


class TempFileStore:
    """Writes each session file into its own fresh temp directory."""

    def __init__(self, prefix: str = TEMP_DIR_PREFIX, root: Path | None = None) -> None:
        self._prefix = prefix
        self._root = root

    def write(self, filename: str, content: str) -> Path:
        """Write ``content`` to ``<new temp dir>/<filename>`` atomically.

        Returns:
            Path of the written file.
        """
        safe_name = filename.replace(os.sep, "_")
        directory = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._root))
        path = directory / safe_name
        staging = directory / f".{safe_name}.tmp"
        staging.write_text(content, encoding="utf-8")
        staging.replace(path)
        return path

    def delete(self, path: Path) -> None:
        """Remove the file and its containing directory.

        Raises:
            CleanupError: If either removal fails.
        """
        try:
            path.unlink(missing_ok=True)
            if path.parent.exists():
                path.parent.rmdir()
        except OSError as e:
            raise CleanupError(str(path), e) from e

    def exists(self, path: Path) -> bool:
        """Return True if ``path`` still exists on disk."""
        return path.is_file()
