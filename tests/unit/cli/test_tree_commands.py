"""Tests for the tree and list commands."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import typer
from typer.testing import CliRunner

from crossplane_explorer.cli.commands.tree import node_label
from crossplane_explorer.integrations.kubernetes.models.identity import ResourceIdentity
from crossplane_explorer.integrations.kubernetes.models.tree import NodeRole, TreeNode


def _root() -> TreeNode:
    return TreeNode(label="Crossplane", kind="root", role=NodeRole.ROOT, expandable=True)


def _provider(name: str, status: str | None = "Healthy") -> TreeNode:
    return TreeNode(
        label=name,
        kind="Provider",
        identity=ResourceIdentity(kind="providers", name=name),
        status=status,
    )


class TestNodeLabel:
    """Tests for node label markup."""

    @pytest.mark.unit
    def test_category_is_bold(self) -> None:
        """Categories render bold cyan."""
        node = TreeNode(label="Providers", kind="providers", role=NodeRole.CATEGORY)

        assert node_label(node) == "[bold cyan]Providers[/bold cyan]"

    @pytest.mark.unit
    def test_status_is_appended(self) -> None:
        """A status not already in the label is appended in its color."""
        assert node_label(_provider("provider-aws", "Unhealthy")) == (
            "provider-aws [red](Unhealthy)[/red]"
        )

    @pytest.mark.unit
    def test_status_in_label_is_not_repeated(self) -> None:
        """Labels that already carry the status are left alone."""
        node = _provider("provider-aws (Healthy)", "Healthy")

        assert node_label(node) == "provider-aws (Healthy)"


@pytest.mark.unit
class TestTreeCommand:
    """Tests for xpx tree."""

    def test_prints_expanded_levels(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """Children are expanded down to the requested depth."""
        category = TreeNode(
            label="Providers", kind="providers", role=NodeRole.CATEGORY, expandable=True
        )

        async def children(node: TreeNode) -> list[TreeNode]:
            if node.role is NodeRole.ROOT:
                return [category]
            return [_provider("provider-aws")]

        mock_context.tree.root.return_value = _root()
        mock_context.tree.get_children.side_effect = children

        result = cli_runner.invoke(cli_app, ["tree", "--depth", "2"])

        assert result.exit_code == 0
        assert "Crossplane" in result.stdout
        assert "Providers" in result.stdout
        assert "provider-aws" in result.stdout

    def test_depth_limits_expansion(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """With depth 1 only the root's children are fetched."""
        category = TreeNode(
            label="Providers", kind="providers", role=NodeRole.CATEGORY, expandable=True
        )
        mock_context.tree.root.return_value = _root()
        mock_context.tree.get_children.return_value = [category]

        result = cli_runner.invoke(cli_app, ["tree", "--depth", "1"])

        assert result.exit_code == 0
        assert mock_context.tree.get_children.await_count == 1


@pytest.mark.unit
class TestListCommand:
    """Tests for xpx list."""

    def test_lists_resources(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """Resources are printed in a table with a total."""
        mock_context.tree.list_resources.return_value = [
            _provider("provider-aws"),
            _provider("provider-gcp", None),
        ]

        result = cli_runner.invoke(cli_app, ["list", "providers"])

        assert result.exit_code == 0
        assert "provider-aws" in result.stdout
        assert "provider-gcp" in result.stdout
        assert "Total: 2 resources" in result.stdout
        mock_context.tree.list_resources.assert_awaited_once_with("providers")

    def test_empty_list(
        self, cli_runner: CliRunner, cli_app: typer.Typer, mock_context: MagicMock
    ) -> None:
        """An empty result prints a notice."""
        result = cli_runner.invoke(cli_app, ["list", "composite"])

        assert result.exit_code == 0
        assert "No composite found" in result.stdout
