"""CLI commands acting on single Crossplane resources.

View/edit sessions are written to a temp file, handed to the configured
editor, and applied on save. The session is always cleaned up when the
editor exits.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.syntax import Syntax

from crossplane_explorer.cli.commands.base import (
    ForceOption,
    NameArgument,
    NamespaceOption,
    TypeArgument,
    confirm_action,
    confirm_delete,
    console,
    exit_on_reported_errors,
    identity_for,
    run,
)
from crossplane_explorer.integrations.kubernetes.models.identity import (
    ResourceIdentity,
    SessionMode,
)
from crossplane_explorer.services.explorer.sessions import ApplyOutcome
from crossplane_explorer.utils.editor import open_in_editor

if TYPE_CHECKING:
    from crossplane_explorer.services.explorer.context import ExplorerContext

# Outcomes after which the user may fix the document and save again
RETRY_OUTCOMES = frozenset({ApplyOutcome.INVALID, ApplyOutcome.FAILED, ApplyOutcome.DENIED})

PackageOption = Annotated[
    str,
    typer.Option(
        "--package",
        "-p",
        help="Package type owning the pod: provider, function or pod",
    ),
]

PathArgument = Annotated[
    Path,
    typer.Argument(exists=True, dir_okay=False, help="Manifest file"),
]


def _finish(ctx: ExplorerContext, ok: bool) -> None:
    """Exit 1 when an action failed or reported an error."""
    if not ok:
        raise typer.Exit(1)
    exit_on_reported_errors(ctx.shell)


async def edit_session(ctx: ExplorerContext, identity: ResourceIdentity) -> ApplyOutcome | None:
    """Drive one view or edit session through the editor.

    Returns:
        The last apply outcome, or None when nothing was saved.
    """
    sessions = ctx.sessions
    path = await sessions.request_open(identity)
    if path is None:
        return None

    outcome: ApplyOutcome | None = None
    try:
        while True:
            before = path.read_text()
            open_in_editor(path, ctx.config.default_editor)
            after = path.read_text()
            if after == before:
                if outcome is None:
                    console.print("[dim]No changes made[/dim]")
                break
            outcome = await sessions.on_document_saved(path, after)
            if outcome not in RETRY_OUTCOMES:
                break
            if not confirm_action("Re-open the editor to fix the document?", default=True):
                break
    finally:
        sessions.on_document_closed(path)
    return outcome


def register_resource_commands(app: typer.Typer, get_context: Callable[[], ExplorerContext]) -> None:
    """Register single-resource commands and the pod and debug groups."""

    # =========================================================================
    # View / Edit
    # =========================================================================

    @app.command("view")
    def view(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
        print_only: Annotated[
            bool,
            typer.Option("--print", help="Print the YAML instead of opening the editor"),
        ] = False,
    ) -> None:
        """Open a resource read-only in the editor.

        Examples:
            xpx view providers provider-aws
            xpx view xnetworks.example.org my-network --print
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace).with_mode(SessionMode.VIEW)

        if print_only:

            async def _print() -> str | None:
                path = await ctx.sessions.request_open(identity)
                if path is None:
                    return None
                try:
                    return path.read_text()
                finally:
                    ctx.sessions.on_document_closed(path)

            text = run(_print)
            exit_on_reported_errors(ctx.shell)
            if text is not None:
                console.print(Syntax(text, "yaml", theme="monokai", word_wrap=True))
            return

        run(lambda: edit_session(ctx, identity))
        exit_on_reported_errors(ctx.shell)

    @app.command("edit")
    def edit(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Edit a resource and apply it when the editor is saved.

        Status, uid and other server-managed fields are stripped before
        editing.

        Examples:
            xpx edit compositions xnetworks.example.org
            xpx edit xnetworks.example.org my-network -n team-a
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace).with_mode(SessionMode.EDIT)
        outcome = run(lambda: edit_session(ctx, identity))
        if outcome is not None and outcome is not ApplyOutcome.APPLIED:
            raise typer.Exit(1)
        if outcome is None:
            exit_on_reported_errors(ctx.shell)

    # =========================================================================
    # Pause / Resume / Delete
    # =========================================================================

    @app.command("pause")
    def pause(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Pause reconciliation of a resource.

        Examples:
            xpx pause xnetworks.example.org my-network
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace)
        _finish(ctx, run(lambda: ctx.actions.set_paused(identity, True)))

    @app.command("resume")
    def resume(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Resume reconciliation of a paused resource."""
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace)
        _finish(ctx, run(lambda: ctx.actions.set_paused(identity, False)))

    @app.command("delete")
    def delete(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
        force: ForceOption = False,
    ) -> None:
        """Delete a resource.

        Examples:
            xpx delete xrds xnetworks.example.org
            xpx delete providers provider-aws --force
        """
        if not force and not confirm_delete(resource_type, name, namespace):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace)
        _finish(ctx, run(lambda: ctx.actions.delete_resource(identity)))

    # =========================================================================
    # Trace / Files / Lint
    # =========================================================================

    @app.command("trace")
    def trace(
        resource_type: TypeArgument,
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Summarize ``crossplane beta trace`` for a resource.

        Examples:
            xpx trace xnetworks.example.org my-network
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, namespace)
        summary = run(lambda: ctx.actions.trace(identity))
        if summary is None:
            raise typer.Exit(1)

    @app.command("apply-file")
    def apply_file(path: PathArgument) -> None:
        """Apply a local manifest (``kubectl apply -f``)."""
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.actions.apply_file(path)))

    @app.command("delete-file")
    def delete_file(path: PathArgument, force: ForceOption = False) -> None:
        """Delete the objects in a local manifest (``kubectl delete -f``)."""
        if not force and not confirm_action(f"Delete all resources defined in {path.name}?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.actions.delete_file(path)))

    @app.command("lint")
    def lint(
        folder: Annotated[
            Path,
            typer.Argument(
                exists=True,
                file_okay=False,
                help="Folder containing composition.yaml and/or definition.yaml",
            ),
        ] = Path("."),
    ) -> None:
        """Run yamllint in a container over a composition folder.

        Examples:
            xpx lint ./apis/network
        """
        ctx = get_context()
        _finish(ctx, run(lambda: ctx.actions.lint_folder(folder)))

    # =========================================================================
    # Pods
    # =========================================================================

    pod_app = typer.Typer(help="Act on provider, function and Crossplane pods")
    app.add_typer(pod_app, name="pod")

    def _pod_identity(package: str, name: str, namespace: str | None) -> ResourceIdentity:
        kind = "pods" if package == "pod" else package
        return identity_for(kind, name, namespace)

    @pod_app.command("kill")
    def pod_kill(
        name: NameArgument,
        namespace: NamespaceOption = None,
        package: PackageOption = "pod",
        force: ForceOption = False,
    ) -> None:
        """Force-delete a pod with a zero grace period.

        Examples:
            xpx pod kill provider-aws --package provider
            xpx pod kill crossplane-7d9f -n crossplane-system
        """
        if not force and not confirm_action(f"Kill pod for '{name}'?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        identity = _pod_identity(package, name, namespace)
        _finish(ctx, run(lambda: ctx.actions.kill_pod(identity)))

    @pod_app.command("restart")
    def pod_restart(
        name: NameArgument,
        namespace: NamespaceOption = None,
        package: PackageOption = "pod",
    ) -> None:
        """Delete a pod so that its controller recreates it."""
        ctx = get_context()
        identity = _pod_identity(package, name, namespace)
        _finish(ctx, run(lambda: ctx.actions.restart_pod(identity)))

    @pod_app.command("details")
    def pod_details(
        name: NameArgument,
        namespace: NamespaceOption = None,
    ) -> None:
        """Open the pod manifest read-only in the editor."""
        ctx = get_context()
        identity = identity_for("pod", name, namespace).with_mode(SessionMode.VIEW)
        run(lambda: edit_session(ctx, identity))
        exit_on_reported_errors(ctx.shell)

    @pod_app.command("logs")
    def pod_logs(
        name: NameArgument,
        namespace: NamespaceOption = None,
        package: PackageOption = "pod",
    ) -> None:
        """Follow the logs of a pod until it exits or Ctrl+C.

        Examples:
            xpx pod logs crossplane-7d9f -n crossplane-system
            xpx pod logs provider-aws --package provider
        """
        ctx = get_context()
        identity = _pod_identity(package, name, namespace)

        async def _follow() -> int | None:
            pod = await ctx.actions.resolve_pod(identity)
            if pod is None:
                return None
            target = identity_for("pod", pod.name, pod.namespace)
            if not await ctx.log_tail.start(target):
                return None
            try:
                return await ctx.log_tail.wait(target)
            finally:
                if ctx.log_tail.is_running(target):
                    ctx.log_tail.stop(target)

        try:
            code = run(_follow)
        except KeyboardInterrupt:
            console.print("\n[dim]Log stream stopped[/dim]")
            return
        if code is None:
            exit_on_reported_errors(ctx.shell)
            raise typer.Exit(1)

    # =========================================================================
    # Debug mode
    # =========================================================================

    debug_app = typer.Typer(help="Toggle the enable-debug DeploymentRuntimeConfig")
    app.add_typer(debug_app, name="debug")

    @debug_app.command("enable")
    def debug_enable(
        resource_type: Annotated[str, typer.Argument(help="provider or function")],
        name: NameArgument,
    ) -> None:
        """Point a provider or function at the enable-debug runtime config.

        Examples:
            xpx debug enable provider provider-aws
        """
        ctx = get_context()
        identity = identity_for(resource_type, name, None)
        _finish(ctx, run(lambda: ctx.actions.set_debug_mode(identity, True)))

    @debug_app.command("disable")
    def debug_disable(
        resource_type: Annotated[str, typer.Argument(help="provider or function")],
        name: NameArgument,
    ) -> None:
        """Point a provider or function back at the default runtime config."""
        ctx = get_context()
        identity = identity_for(resource_type, name, None)
        _finish(ctx, run(lambda: ctx.actions.set_debug_mode(identity, False)))

    @debug_app.command("cleanup")
    def debug_cleanup(force: ForceOption = False) -> None:
        """Delete the enable-debug runtime config when nothing references it."""
        if not force and not confirm_action("Delete the enable-debug DeploymentRuntimeConfig?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
        ctx = get_context()
        _finish(ctx, run(ctx.actions.delete_debug_runtime_config))
