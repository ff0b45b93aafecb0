"""Tests for xpx watch."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import typer
from typer.testing import CliRunner

from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError
from crossplane_explorer.integrations.kubernetes.models.identity import ResourceIdentity


@pytest.mark.unit
class TestWatchCommand:
    """Tests for the field watch command."""

    def test_watch_for_duration(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """The watch runs for --duration and is stopped afterwards."""
        identity = ResourceIdentity(kind="xnetworks.example.org", name="net", namespace="team-a")

        result = cli_runner.invoke(
            cli_app,
            ["watch", "xnetworks.example.org", "net", "-n", "team-a", "--duration", "5"],
        )

        assert result.exit_code == 0
        mock_context.field_watch.start.assert_awaited_once_with(identity)
        mock_context.field_watch.wait.assert_awaited_once_with(identity, timeout=5.0)
        mock_context.field_watch.stop.assert_called_once_with(identity)

    def test_watch_not_started(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """A watch that did not start exits 1."""
        mock_context.field_watch.start.return_value = False

        result = cli_runner.invoke(cli_app, ["watch", "providers", "provider-aws"])

        assert result.exit_code == 1
        mock_context.field_watch.wait.assert_not_awaited()

    def test_unresolvable_kind(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """A kind without a CRD exits 1."""
        mock_context.field_watch.start.side_effect = WatchResolutionError(
            "xthings.example.org", RuntimeError("404")
        )

        result = cli_runner.invoke(cli_app, ["watch", "xthings.example.org", "thing"])

        assert result.exit_code == 1
        mock_context.field_watch.stop.assert_not_called()
