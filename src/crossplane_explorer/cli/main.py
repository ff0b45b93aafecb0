"""Main CLI entry point using Typer."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from crossplane_explorer import __version__
from crossplane_explorer.cli.commands.base import get_config, get_context, set_config
from crossplane_explorer.cli.commands.composition import register_composition_commands
from crossplane_explorer.cli.commands.helm import register_helm_commands
from crossplane_explorer.cli.commands.resources import register_resource_commands
from crossplane_explorer.cli.commands.tree import register_tree_commands
from crossplane_explorer.cli.commands.watch import register_watch_commands
from crossplane_explorer.core.config import load_config
from crossplane_explorer.logging.config import configure_logging

app = typer.Typer(
    name="xpx",
    help="Crossplane Explorer - browse, edit and watch Crossplane and Helm resources.",
    add_completion=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"xpx version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Render log output as JSON.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: ~/.config/xpx/config.yaml).",
    ),
) -> None:
    """Crossplane Explorer - inspect and operate Crossplane from the terminal."""
    configure_logging(verbose=verbose, debug=debug, json_output=json_logs)
    try:
        set_config(load_config(config_path))
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        console.print(f"[red]Error:[/red] Invalid configuration\n{escape(str(e))}")
        raise typer.Exit(1) from None


@app.command("tui")
def tui() -> None:
    """Open the interactive explorer.

    Examples:
        xpx tui
        xpx --config ./xpx.yaml tui
    """
    from crossplane_explorer.tui.apps.explorer import ExplorerApp

    # The terminal belongs to the interface; keep logging in the log file.
    configure_logging(console=False)
    ExplorerApp(config=get_config()).run()


# Register subcommands
register_tree_commands(app, get_context)
register_resource_commands(app, get_context)
register_watch_commands(app, get_context)
register_helm_commands(app, get_context)
register_composition_commands(app, get_context)


if __name__ == "__main__":
    app()
