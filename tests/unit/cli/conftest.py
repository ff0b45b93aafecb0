"""Fixtures for CLI command tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep CLI tests away from the user's config file and log directory."""
    monkeypatch.setattr("crossplane_explorer.cli.commands.base._config", None)
    monkeypatch.setattr(
        "crossplane_explorer.core.config.models.CONFIG_FILE", tmp_path / "missing.yaml"
    )
    monkeypatch.setattr("crossplane_explorer.cli.main.configure_logging", MagicMock())


@pytest.fixture
def mock_context() -> Generator[MagicMock]:
    """Replace the ExplorerContext built by each command.

    Service methods awaited by the commands are AsyncMocks; the shell is
    a plain mock so that no reported error forces a non-zero exit.
    """
    ctx = MagicMock()
    ctx.config.default_editor = "vi"

    ctx.tree.get_children = AsyncMock(return_value=[])
    ctx.tree.list_resources = AsyncMock(return_value=[])

    ctx.sessions.request_open = AsyncMock(return_value=None)
    ctx.sessions.on_document_saved = AsyncMock()

    for name in (
        "set_paused",
        "delete_resource",
        "trace",
        "apply_file",
        "delete_file",
        "lint_folder",
        "kill_pod",
        "restart_pod",
        "resolve_pod",
        "set_debug_mode",
        "delete_debug_runtime_config",
    ):
        setattr(ctx.actions, name, AsyncMock(return_value=True))

    ctx.log_tail.start = AsyncMock(return_value=True)
    ctx.log_tail.wait = AsyncMock(return_value=0)
    ctx.log_tail.is_running = MagicMock(return_value=False)

    ctx.field_watch.start = AsyncMock(return_value=True)
    ctx.field_watch.wait = AsyncMock()

    ctx.helm_tree.get_children = AsyncMock(return_value=[])
    ctx.helm_tree.releases = []
    ctx.helm_tree.find_release = AsyncMock(return_value=None)
    for name in (
        "details",
        "rollback_candidates",
        "rollback",
        "available_versions",
        "upgrade",
        "uninstall",
    ):
        setattr(ctx.helm_releases, name, AsyncMock())

    ctx.composition.init_folder = MagicMock()
    for name in ("render", "validate", "deploy", "undeploy"):
        setattr(ctx.composition, name, AsyncMock(return_value=True))

    with patch("crossplane_explorer.cli.commands.base.ExplorerContext", return_value=ctx) as factory:
        ctx.factory = factory
        yield ctx
