"""Tests for the crossplane_explorer version."""

from __future__ import annotations

from importlib.metadata import version

import pytest
import typer
from typer.testing import CliRunner

from crossplane_explorer import __version__


@pytest.mark.unit
class TestVersion:
    """The package, the distribution and ``xpx --version`` agree."""

    def test_matches_distribution_metadata(self) -> None:
        """hatch reads the version from __version__.py into the wheel metadata."""
        assert version("crossplane-explorer") == __version__

    def test_cli_reports_package_version(
        self, cli_runner: CliRunner, cli_app: typer.Typer
    ) -> None:
        """xpx --version prints exactly the package version."""
        result = cli_runner.invoke(cli_app, ["--version"])

        assert result.exit_code == 0
        assert result.stdout.strip() == f"xpx version {__version__}"
