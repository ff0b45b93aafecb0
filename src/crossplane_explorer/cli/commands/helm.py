"""CLI commands for Helm releases."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from crossplane_explorer.cli.commands.base import (
    ForceOption,
    confirm_action,
    confirm_delete,
    console,
    exit_on_reported_errors,
    run,
)

if TYPE_CHECKING:
    from crossplane_explorer.integrations.kubernetes.models.helm import HelmRelease
    from crossplane_explorer.services.explorer.context import ExplorerContext

RELEASE_STATUS_STYLES = {
    "deployed": "green",
    "failed": "red",
    "superseded": "dim",
    "uninstalled": "dim",
}

ReleaseArgument = Annotated[str, typer.Argument(help="Helm release name")]

ReleaseNamespaceOption = Annotated[
    str | None,
    typer.Option(
        "--namespace",
        "-n",
        help="Namespace of the release (needed when the name is not unique)",
    ),
]


def _status(status: str) -> str:
    style = RELEASE_STATUS_STYLES.get(status, "yellow")
    return f"[{style}]{escape(status)}[/{style}]"


def register_helm_commands(app: typer.Typer, get_context: Callable[[], ExplorerContext]) -> None:
    """Register the helm command group."""

    helm_app = typer.Typer(help="Inspect and manage Helm releases")
    app.add_typer(helm_app, name="helm")

    def _release(ctx: ExplorerContext, name: str, namespace: str | None) -> HelmRelease:
        release = run(lambda: ctx.helm_tree.find_release(name, namespace))
        exit_on_reported_errors(ctx.shell)
        if release is None:
            where = f" in namespace '{namespace}'" if namespace else ""
            console.print(f"[red]Error:[/red] Helm release '{escape(name)}' not found{escape(where)}")
            raise typer.Exit(1)
        return release

    @helm_app.command("list")
    def list_releases() -> None:
        """List Helm releases in all namespaces.

        Examples:
            xpx helm list
        """
        ctx = get_context()

        async def _load() -> list[HelmRelease]:
            await ctx.helm_tree.get_children()
            return ctx.helm_tree.releases

        releases = run(_load)
        exit_on_reported_errors(ctx.shell)
        if not releases:
            console.print("[yellow]No Helm releases found[/yellow]")
            return

        table = Table(title="Helm Releases")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Namespace", style="cyan")
        table.add_column("Revision", justify="right")
        table.add_column("Status")
        table.add_column("Chart")
        table.add_column("App Version")
        table.add_column("Updated", style="dim")
        for release in sorted(releases, key=lambda r: (r.namespace, r.name)):
            table.add_row(
                release.name,
                release.namespace,
                str(release.revision),
                _status(release.status),
                release.chart,
                release.app_version or "N/A",
                release.updated,
            )
        console.print(table)
        console.print(f"\n[dim]Total: {len(releases)} releases[/dim]")

    @helm_app.command("show")
    def show(
        name: ReleaseArgument,
        namespace: ReleaseNamespaceOption = None,
        section: Annotated[
            str,
            typer.Option(
                "--section",
                "-s",
                help="What to show: all, values, notes, manifest or history",
            ),
        ] = "all",
    ) -> None:
        """Show the values, notes, manifest and history of a release.

        Examples:
            xpx helm show crossplane -n crossplane-system
            xpx helm show crossplane --section values
        """
        sections = ("all", "values", "notes", "manifest", "history")
        if section not in sections:
            console.print(f"[red]Error:[/red] --section must be one of: {', '.join(sections)}")
            raise typer.Exit(1)
        ctx = get_context()
        release = _release(ctx, name, namespace)
        details = run(lambda: ctx.helm_releases.details(release))
        if details is None:
            raise typer.Exit(1)

        if section == "all":
            console.print(
                Panel(
                    f"[bold]Chart:[/bold] {escape(release.chart)}\n"
                    f"[bold]Status:[/bold] {_status(release.status)}\n"
                    f"[bold]Revision:[/bold] {release.revision}\n"
                    f"[bold]App Version:[/bold] {escape(release.app_version or 'N/A')}\n"
                    f"[bold]Updated:[/bold] {escape(release.updated)}",
                    title=f"{release.name} ({release.namespace})",
                )
            )
        if section in ("all", "values"):
            console.print("\n[bold]Values[/bold]")
            console.print(Syntax(details.values or "{}", "yaml", theme="monokai"))
        if section in ("all", "notes"):
            console.print("\n[bold]Notes[/bold]")
            console.print(details.notes, markup=False, highlight=False)
        if section in ("all", "manifest"):
            console.print("\n[bold]Manifest[/bold]")
            console.print(Syntax(details.manifest, "yaml", theme="monokai"))
        if section in ("all", "history"):
            table = Table(title="History")
            table.add_column("Revision", justify="right")
            table.add_column("Status")
            table.add_column("Chart")
            table.add_column("App Version")
            table.add_column("Description")
            table.add_column("Updated", style="dim")
            for entry in details.history:
                table.add_row(
                    str(entry.revision),
                    _status(entry.status),
                    entry.chart,
                    entry.app_version,
                    entry.description,
                    entry.updated,
                )
            console.print(table)

    @helm_app.command("rollback")
    def rollback(
        name: ReleaseArgument,
        namespace: ReleaseNamespaceOption = None,
        revision: Annotated[
            int | None,
            typer.Option("--revision", "-r", help="Revision to roll back to (prompted if omitted)"),
        ] = None,
        force: ForceOption = False,
    ) -> None:
        """Roll a release back to an older revision.

        Examples:
            xpx helm rollback crossplane -n crossplane-system
            xpx helm rollback crossplane --revision 3 --force
        """
        ctx = get_context()
        release = _release(ctx, name, namespace)
        candidates = run(lambda: ctx.helm_releases.rollback_candidates(release))
        if not candidates:
            raise typer.Exit(1)

        choices = {entry.revision: entry for entry in candidates}
        if revision is None:
            for entry in candidates:
                console.print(
                    f"  [cyan]{entry.revision}[/cyan]  {_status(entry.status)}  "
                    f"{escape(entry.chart)}  [dim]{escape(entry.updated)}[/dim]"
                )
            revision = typer.prompt("Revision to roll back to", type=int, default=candidates[0].revision)
        if revision not in choices:
            console.print(f"[red]Error:[/red] Revision {revision} is not an older revision of {escape(name)}")
            raise typer.Exit(1)

        if not force and not confirm_action(
            f"Roll back {release.name} from revision {release.revision} to {revision}?"
        ):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        if not run(lambda: ctx.helm_releases.rollback(release, revision)):
            raise typer.Exit(1)

    @helm_app.command("versions")
    def versions(
        name: ReleaseArgument,
        namespace: ReleaseNamespaceOption = None,
    ) -> None:
        """List chart versions available for a release, newest first."""
        ctx = get_context()
        release = _release(ctx, name, namespace)
        available = run(lambda: ctx.helm_releases.available_versions(release))
        if not available:
            raise typer.Exit(1)
        console.print(f"[bold]{escape(ctx.helm_releases.chart_ref(release))}[/bold]")
        for version in available:
            marker = "  [green](installed)[/green]" if version == release.chart_version else ""
            console.print(f"  {escape(version)}{marker}")

    @helm_app.command("upgrade")
    def upgrade(
        name: ReleaseArgument,
        namespace: ReleaseNamespaceOption = None,
        version: Annotated[
            str | None,
            typer.Option("--version", help="Chart version (prompted if omitted)"),
        ] = None,
        force: ForceOption = False,
    ) -> None:
        """Upgrade a release to another chart version.

        Examples:
            xpx helm upgrade redis -n cache
            xpx helm upgrade redis --version 18.1.0 --force
        """
        ctx = get_context()
        release = _release(ctx, name, namespace)
        if version is None:
            available = run(lambda: ctx.helm_releases.available_versions(release))
            if not available:
                raise typer.Exit(1)
            for candidate in available:
                console.print(f"  {escape(candidate)}")
            version = typer.prompt("Version to upgrade to", default=available[0])

        if not force and not confirm_action(
            f"Upgrade {release.name} from {release.chart_version or release.chart} to {version}?"
        ):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        target = version
        if not run(lambda: ctx.helm_releases.upgrade(release, target)):
            raise typer.Exit(1)

    @helm_app.command("uninstall")
    def uninstall(
        name: ReleaseArgument,
        namespace: ReleaseNamespaceOption = None,
        force: ForceOption = False,
    ) -> None:
        """Uninstall a release."""
        ctx = get_context()
        release = _release(ctx, name, namespace)
        if not force and not confirm_delete("Helm release", release.name, release.namespace):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        if not run(lambda: ctx.helm_releases.uninstall(release)):
            raise typer.Exit(1)
