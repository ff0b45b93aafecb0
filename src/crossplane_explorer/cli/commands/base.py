"""Base utilities for explorer CLI commands.

Provides common Typer options, the console-backed ExplorerShell, error
handling and the per-invocation ExplorerContext factory.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Annotated, Any, NoReturn, TypeVar

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule

from crossplane_explorer.core.config import ExplorerConfig
from crossplane_explorer.integrations.kubernetes.exceptions import (
    BinaryNotFoundError,
    ExplorerError,
    HelmCommandError,
    PermissionDeniedError,
    ProcessError,
    ProcessTimeoutError,
    WatchResolutionError,
)
from crossplane_explorer.integrations.kubernetes.models.identity import ResourceIdentity
from crossplane_explorer.services.explorer.context import ExplorerContext
from crossplane_explorer.services.explorer.shell import ExplorerShell

# Shared console instance
console = Console()
logger = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Common Typer Option Annotations
# =============================================================================

TypeArgument = Annotated[
    str,
    typer.Argument(help="Resource type (e.g. providers, xrds, xnetworks.example.org)"),
]

NameArgument = Annotated[
    str,
    typer.Argument(help="Resource name"),
]

NamespaceOption = Annotated[
    str | None,
    typer.Option(
        "--namespace",
        "-n",
        help="Kubernetes namespace of the resource",
    ),
]

ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Skip confirmation prompts",
    ),
]


def identity_for(resource_type: str, name: str, namespace: str | None) -> ResourceIdentity:
    """Build the identity addressed by command arguments."""
    return ResourceIdentity(kind=resource_type, name=name, namespace=namespace or "")


# =============================================================================
# Console shell
# =============================================================================


class ConsoleSink:
    """OutputSink printing to the console under a titled rule."""

    def __init__(self, target: Console, title: str) -> None:
        self._console = target
        self.title = title
        self._shown = False
        self.disposed = False

    def show(self) -> None:
        if not self._shown and not self.disposed:
            self._shown = True
            self._console.print(Rule(self.title))

    def append_line(self, text: str) -> None:
        if not self.disposed:
            self._console.print(text, markup=False, highlight=False, soft_wrap=True)

    def append(self, text: str) -> None:
        if not self.disposed:
            self._console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

    def dispose(self) -> None:
        self.disposed = True


class ConsoleShell:
    """ExplorerShell for one-shot commands.

    Documents are not opened here; commands drive the editor themselves
    after a session file has been written. Errors are counted so that a
    command can exit non-zero after a boundary reported one.
    """

    def __init__(self, target: Console | None = None) -> None:
        self.console = target or console
        self.errors: list[str] = []
        self.opened: list[Path] = []

    def show_info(self, message: str) -> None:
        self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)

    def show_error(self, message: str) -> None:
        self.errors.append(message)
        self.console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)

    def open_document(self, path: Path, *, read_only: bool) -> None:
        logger.debug("document_ready", path=str(path), read_only=read_only)
        self.opened.append(path)

    def close_document(self, path: Path) -> None:
        if path in self.opened:
            self.opened.remove(path)

    def create_sink(self, title: str) -> ConsoleSink:
        return ConsoleSink(self.console, title)


# =============================================================================
# Context
# =============================================================================

_config: ExplorerConfig | None = None


def set_config(config: ExplorerConfig) -> None:
    """Install the configuration loaded by the root callback."""
    global _config
    _config = config


def get_config() -> ExplorerConfig:
    """Return the active configuration (environment-only if none was loaded)."""
    return _config if _config is not None else ExplorerConfig.from_env()


def get_context() -> ExplorerContext:
    """Create the clients and services for one command invocation."""
    return ExplorerContext(get_config(), ConsoleShell())


def run(coro_factory: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Run an async command body, mapping explorer errors to exit codes."""
    try:
        return asyncio.run(coro_factory())
    except ExplorerError as e:
        handle_explorer_error(e)


def exit_on_reported_errors(shell: ExplorerShell) -> None:
    """Exit with code 1 when a service boundary reported an error."""
    if isinstance(shell, ConsoleShell) and shell.errors:
        raise typer.Exit(1)


# =============================================================================
# Error Handling
# =============================================================================


def handle_explorer_error(error: ExplorerError) -> NoReturn:
    """Handle explorer errors with user-friendly output.

    Args:
        error: The explorer error to handle.

    Raises:
        typer.Exit: Always exits with code 1.
    """
    logger.debug("command_failed", error_type=type(error).__name__, error=str(error))

    if isinstance(error, BinaryNotFoundError):
        console.print("[red]Error:[/red] Required tool not found")
        console.print(f"  {escape(error.message)}")
        console.print("\n[dim]Hint: Set its path in ~/.config/xpx/config.yaml or XPX_* env.[/dim]")

    elif isinstance(error, PermissionDeniedError):
        console.print("[red]Error:[/red] Permission denied")
        console.print(f"  {escape(error.stderr.strip() or error.message)}")
        console.print("\n[dim]Hint: Check your RBAC permissions for this resource.[/dim]")

    elif isinstance(error, ProcessTimeoutError):
        console.print("[red]Error:[/red] Command timed out")
        console.print(f"  {escape(error.message)}")
        console.print("\n[dim]Hint: Increase command_timeout or XPX_COMMAND_TIMEOUT.[/dim]")

    elif isinstance(error, HelmCommandError):
        console.print("[red]Error:[/red] Helm command failed")
        console.print(f"  {escape(error.stderr.strip() or error.message)}")

    elif isinstance(error, WatchResolutionError):
        console.print(f"[red]Error:[/red] {escape(error.message)}")
        console.print("\n[dim]Hint: Try running 'kubectl get crd' to see available CRDs.[/dim]")

    elif isinstance(error, ProcessError):
        console.print("[red]Error:[/red] Command failed")
        console.print(f"  {escape(error.stderr.strip() or error.message)}")
        if error.exit_code is not None:
            console.print(f"  Exit code: {error.exit_code}")

    else:
        console.print(f"[red]Error:[/red] {escape(str(error))}")

    raise typer.Exit(1)


# =============================================================================
# Confirmation Utilities
# =============================================================================


def confirm_delete(resource_type: str, name: str, namespace: str | None = None) -> bool:
    """Prompt user to confirm deletion."""
    msg = f"Are you sure you want to delete {resource_type} '{name}'"
    if namespace:
        msg += f" in namespace '{namespace}'"
    msg += "? This action cannot be undone."
    return typer.confirm(msg, default=False)


def confirm_action(message: str, default: bool = False) -> bool:
    """Prompt user to confirm an action."""
    return typer.confirm(message, default=default)
