"""Shared fixtures for explorer service tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from crossplane_explorer.services.explorer.shell import TempFileStore


class RecordingSink:
    """Output sink that keeps everything written to it."""

    def __init__(self, title: str) -> None:
        self.title = title
        self.lines: list[str] = []
        self.chunks: list[str] = []
        self.shown = 0
        self.disposed = False

    def append_line(self, text: str) -> None:
        if not self.disposed:
            self.lines.append(text)

    def append(self, text: str) -> None:
        if not self.disposed:
            self.chunks.append(text)

    def show(self) -> None:
        self.shown += 1

    def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def shell() -> MagicMock:
    """Create a shell mock whose sinks are RecordingSink instances.

    Created sinks are collected in ``shell.sinks``.
    """
    mock_shell = MagicMock()
    mock_shell.sinks = []

    def create_sink(title: str) -> RecordingSink:
        sink = RecordingSink(title)
        mock_shell.sinks.append(sink)
        return sink

    mock_shell.create_sink.side_effect = create_sink
    return mock_shell


@pytest.fixture
def mock_kubectl() -> MagicMock:
    """Create a KubectlClient mock with async commands."""
    kubectl = MagicMock()
    for name in (
        "get_json",
        "get_text",
        "get_columns",
        "list_api_resources",
        "apply",
        "apply_file",
        "delete_file",
        "delete",
        "annotate",
        "follow_logs",
    ):
        setattr(kubectl, name, AsyncMock())
    return kubectl


@pytest.fixture
def store(tmp_path: Path) -> TempFileStore:
    """Create a temp file store rooted in the test's tmp_path."""
    return TempFileStore(root=tmp_path)
