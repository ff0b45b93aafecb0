"""Tests for the root CLI callback and error mapping."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import typer
from typer.testing import CliRunner

from crossplane_explorer.integrations.kubernetes.exceptions import (
    BinaryNotFoundError,
    PermissionDeniedError,
    ProcessError,
    ProcessTimeoutError,
)


class TestRootCallback:
    """Tests for global options."""

    @pytest.mark.unit
    def test_help_option(self, cli_runner: CliRunner, cli_app: typer.Typer) -> None:
        """--help lists the command groups."""
        result = cli_runner.invoke(cli_app, ["--help"])

        assert result.exit_code == 0
        assert "Crossplane Explorer" in result.stdout
        assert "helm" in result.stdout

    @pytest.mark.unit
    def test_version_option(self, cli_runner: CliRunner, cli_app: typer.Typer) -> None:
        """--version prints the package version."""
        result = cli_runner.invoke(cli_app, ["--version"])

        assert result.exit_code == 0
        assert "xpx version" in result.stdout

    @pytest.mark.unit
    def test_missing_config_file_fails(
        self, cli_runner: CliRunner, cli_app: typer.Typer, temp_dir: Path
    ) -> None:
        """An explicit --config that does not exist exits 1."""
        result = cli_runner.invoke(
            cli_app, ["--config", str(temp_dir / "nope.yaml"), "list", "providers"]
        )

        assert result.exit_code == 1
        assert "Error" in result.stdout

    @pytest.mark.unit
    def test_invalid_config_file_fails(
        self, cli_runner: CliRunner, cli_app: typer.Typer, temp_dir: Path
    ) -> None:
        """Unknown configuration keys are rejected."""
        config_path = temp_dir / "bad.yaml"
        config_path.write_text("no_such_option: true\n")

        result = cli_runner.invoke(cli_app, ["--config", str(config_path), "list", "providers"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    @pytest.mark.unit
    def test_config_file_reaches_context(
        self,
        cli_runner: CliRunner,
        cli_app: typer.Typer,
        temp_config_file: Path,
        mock_context: MagicMock,
    ) -> None:
        """The loaded configuration is handed to the ExplorerContext."""
        result = cli_runner.invoke(cli_app, ["--config", str(temp_config_file), "list", "providers"])

        assert result.exit_code == 0
        config = mock_context.factory.call_args.args[0]
        assert config.context == "kind-test"
        assert config.exclude_crd_suffixes == ["crossplane.io"]


class TestErrorMapping:
    """Tests for explorer errors raised out of a command body."""

    @pytest.mark.unit
    def test_binary_not_found(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """A missing binary prints an install hint."""
        mock_context.actions.set_paused.side_effect = BinaryNotFoundError(
            "crossplane", "https://docs.crossplane.io"
        )

        result = cli_runner.invoke(cli_app, ["pause", "providers", "provider-aws"])

        assert result.exit_code == 1
        assert "Required tool not found" in result.stdout
        assert "crossplane binary not found" in result.stdout

    @pytest.mark.unit
    def test_permission_denied(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """RBAC failures print the cluster's message."""
        mock_context.actions.set_paused.side_effect = PermissionDeniedError(
            "Command failed", exit_code=1, stderr="forbidden: cannot patch providers"
        )

        result = cli_runner.invoke(cli_app, ["pause", "providers", "provider-aws"])

        assert result.exit_code == 1
        assert "Permission denied" in result.stdout
        assert "forbidden" in result.stdout

    @pytest.mark.unit
    def test_timeout(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """Timeouts point at the timeout setting."""
        mock_context.actions.set_paused.side_effect = ProcessTimeoutError(30, ["kubectl", "patch"])

        result = cli_runner.invoke(cli_app, ["pause", "providers", "provider-aws"])

        assert result.exit_code == 1
        assert "Command timed out" in result.stdout

    @pytest.mark.unit
    def test_process_error_prints_exit_code(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """Generic process failures show stderr and the exit code."""
        mock_context.actions.set_paused.side_effect = ProcessError(
            "Command failed", exit_code=2, stderr="no matches for kind"
        )

        result = cli_runner.invoke(cli_app, ["pause", "providers", "provider-aws"])

        assert result.exit_code == 1
        assert "no matches for kind" in result.stdout
        assert "Exit code: 2" in result.stdout
