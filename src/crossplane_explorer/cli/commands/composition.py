"""CLI commands for developing a composition in a local folder."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from crossplane_explorer.cli.commands.base import (
    ForceOption,
    confirm_action,
    console,
    exit_on_reported_errors,
    run,
)

if TYPE_CHECKING:
    from crossplane_explorer.services.explorer.context import ExplorerContext

FolderArgument = Annotated[
    Path,
    typer.Argument(
        exists=True,
        file_okay=False,
        help="Composition folder (definition.yaml, composition.yaml, xr.yaml, ...)",
    ),
]

DEPLOY_PROMPT = (
    "Deploy? This applies definition.yaml and then composition.yaml "
    "(and xr.yaml if present) to the cluster, in that order."
)
UNDEPLOY_PROMPT = (
    "UnDeploy? This deletes xr.yaml (if present), then composition.yaml, then "
    "definition.yaml from the cluster. Make sure no other XRs use this definition; "
    "this cannot be undone."
)


def _finish(ctx: ExplorerContext, ok: bool) -> None:
    if not ok:
        raise typer.Exit(1)
    exit_on_reported_errors(ctx.shell)


def register_composition_commands(
    app: typer.Typer,
    get_context: Callable[[], ExplorerContext],
) -> None:
    """Register the ``composition`` command group with the CLI app."""
    composition_app = typer.Typer(
        help="Scaffold, render, validate and deploy a composition folder",
        no_args_is_help=True,
    )
    app.add_typer(composition_app, name="composition")

    @composition_app.command("init")
    def init(
        folder: Annotated[
            Path,
            typer.Argument(file_okay=False, help="Folder to create the template files in"),
        ] = Path("."),
    ) -> None:
        """Create the composition template files, keeping existing ones.

        Examples:
            xpx composition init ./apis/bucket
        """
        ctx = get_context()
        ctx.composition.init_folder(folder)
        exit_on_reported_errors(ctx.shell)

    @composition_app.command("render")
    def render(folder: FolderArgument = Path(".")) -> None:
        """Run ``crossplane render`` and write renderTestOutput.yaml.

        Examples:
            xpx composition render ./apis/bucket
        """
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.composition.render(folder)))

    @composition_app.command("validate")
    def validate(folder: FolderArgument = Path(".")) -> None:
        """Download provider CRDs and validate the render output against them.

        Providers and kinds are read from providers-metadata.json.

        Examples:
            xpx composition render ./apis/bucket
            xpx composition validate ./apis/bucket
        """
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.composition.validate(folder)))

    @composition_app.command("deploy")
    def deploy(folder: FolderArgument = Path("."), force: ForceOption = False) -> None:
        """Apply definition.yaml, composition.yaml and xr.yaml.

        Examples:
            xpx composition deploy ./apis/bucket
            xpx composition deploy ./apis/bucket --force
        """
        if not force and not confirm_action(DEPLOY_PROMPT):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.composition.deploy(folder)))

    @composition_app.command("undeploy")
    def undeploy(folder: FolderArgument = Path("."), force: ForceOption = False) -> None:
        """Delete xr.yaml, composition.yaml and definition.yaml from the cluster.

        Examples:
            xpx composition undeploy ./apis/bucket
        """
        if not force and not confirm_action(UNDEPLOY_PROMPT):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.composition.undeploy(folder)))
