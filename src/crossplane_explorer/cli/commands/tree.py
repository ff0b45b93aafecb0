"""CLI commands for browsing the Crossplane resource tree."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Annotated

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from crossplane_explorer.cli.commands.base import (
    console,
    exit_on_reported_errors,
    run,
)

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.models.tree import TreeNode
    from crossplane_explorer.services.explorer.context import ExplorerContext
    from crossplane_explorer.services.explorer.tree_model import CrossplaneTreeModel

STATUS_STYLES = {
    "Healthy": "green",
    "Synced": "green",
    "Running": "green",
    "Unhealthy": "red",
    "NotSynced": "red",
    "Failed": "red",
}


def node_label(node: TreeNode) -> str:
    """Rich markup label for a tree node."""
    label = escape(node.label)
    if node.role == "category":
        return f"[bold cyan]{label}[/bold cyan]"
    if node.status and node.status not in node.label:
        style = STATUS_STYLES.get(node.status, "yellow")
        label += f" [{style}]({escape(node.status)})[/{style}]"
    return label


async def expand_tree(model: CrossplaneTreeModel, node: TreeNode, branch: Tree, depth: int) -> None:
    """Expand ``node`` into ``branch`` down to ``depth`` levels.

    Siblings are expanded one after another so that bulk categories
    share the single combined fetch.
    """
    if depth <= 0 or not node.expandable:
        return
    for child in await model.get_children(node):
        await expand_tree(model, child, branch.add(node_label(child)), depth - 1)


def register_tree_commands(app: typer.Typer, get_context: Callable[[], ExplorerContext]) -> None:
    """Register tree and list commands."""

    @app.command("tree")
    def tree(
        depth: Annotated[
            int,
            typer.Option("--depth", "-d", min=1, help="Levels to expand below the root"),
        ] = 2,
    ) -> None:
        """Print the Crossplane resource tree.

        Examples:
            xpx tree
            xpx tree --depth 4
        """
        ctx = get_context()

        async def _tree() -> Tree:
            root = ctx.tree.root()
            rendered = Tree(f"[bold]{escape(root.label)}[/bold]")
            await expand_tree(ctx.tree, root, rendered, depth)
            return rendered

        console.print(run(_tree))
        exit_on_reported_errors(ctx.shell)

    @app.command("list")
    def list_resources(
        resource_type: Annotated[
            str,
            typer.Argument(help="Resource type, e.g. crds, composite, claim, managed, providers"),
        ],
    ) -> None:
        """List resources of any type with their derived status.

        Examples:
            xpx list providers
            xpx list composite
            xpx list crds
        """
        ctx = get_context()
        nodes = run(lambda: ctx.tree.list_resources(resource_type))
        exit_on_reported_errors(ctx.shell)
        if not nodes:
            console.print(f"[yellow]No {escape(resource_type)} found[/yellow]")
            return

        table = Table(title=resource_type)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Namespace", style="cyan")
        table.add_column("Type")
        table.add_column("Status")
        for node in nodes:
            identity = node.identity
            status = node.status or "-"
            style = STATUS_STYLES.get(status, "yellow")
            table.add_row(
                identity.name if identity else node.label,
                (identity.namespace if identity else "") or "-",
                node.kind,
                f"[{style}]{escape(status)}[/{style}]",
            )
        console.print(table)
        console.print(f"\n[dim]Total: {len(nodes)} resources[/dim]")
