"""CLI command streaming field-level changes of a resource."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Annotated

import typer

from crossplane_explorer.cli.commands.base import (
    NameArgument,
    NamespaceOption,
    TypeArgument,
    console,
    identity_for,
    run,
)
from crossplane_explorer.integrations.kubernetes.exceptions import WatchResolutionError

if TYPE_CHECKING:
    from crossplane_explorer.services.explorer.context import ExplorerContext


def register_watch_commands(app: typer.Typer, get_context: Callable[[], ExplorerContext]) -> None:
    """Register the watch command."""

    @app.command("watch")
    def watch(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
        duration: Annotated[
            float | None,
            typer.Option(
                "--duration",
                "-d",
                min=0.1,
                help="Stop after this many seconds (default: until Ctrl+C)",
            ),
        ] = None,
    ) -> None:
        """Stream field-level diffs of a resource as it changes.

        The first event is diffed against an empty object, later ones
        against the previous state. Noisy metadata and status conditions
        are ignored.

        Examples:
            xpx watch xnetworks.example.org my-network
            xpx watch providers provider-aws --duration 60
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace)

        async def _watch() -> bool:
            try:
                started = await ctx.field_watch.start(identity)
            except WatchResolutionError:
                # Already written to the watch output.
                return False
            if not started:
                return False
            try:
                await ctx.field_watch.wait(identity, timeout=duration)
            finally:
                ctx.field_watch.stop(identity)
            return True

        try:
            ok = run(_watch)
        except KeyboardInterrupt:
            console.print("\n[dim]Field Watch stopped[/dim]")
            return
        if not ok:
            raise typer.Exit(1)
