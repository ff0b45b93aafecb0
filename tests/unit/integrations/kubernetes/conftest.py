"""Shared fixtures for CLI wrapper tests."""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crossplane_explorer.integrations.kubernetes.process import ProcessResult


@pytest.fixture
def mock_runner() -> MagicMock:
    """Create a ProcessRunner mock whose run resolves to empty output."""
    runner = MagicMock()
    runner.run = AsyncMock(return_value=ProcessResult(stdout="", stderr=""))
    runner.spawn = AsyncMock()
    return runner


@pytest.fixture
def found_binary() -> Generator[MagicMock]:
    """Make every binary lookup succeed with a /usr/bin path."""
    with patch(
        "crossplane_explorer.integrations.kubernetes.cli_tool.shutil.which",
        side_effect=lambda name: f"/usr/bin/{name}",
    ) as mock_which:
        yield mock_which
