"""Config management commands for tokeneater."""

from __future__ import annotations

import msgspec
import msgspec.toml
import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from tokeneater.cli.app import ExitCode
from tokeneater.cli.atyper import ATyper
from tokeneater.config.paths import config_dir
from tokeneater.config.paths import config_file
from tokeneater.config.paths import shared_file
from tokeneater.config.paths import state_dir
from tokeneater.config.settings import get_config
from tokeneater.display.json import output_json_pretty
from tokeneater.models import validate_thresholds

# Create config group
config_app = ATyper(help="Manage configuration settings.")


@config_app.command("show")
def config_show_command(ctx: typer.Context) -> None:
    """Display current settings."""
    console = Console()

    config = get_config()
    config_path = config_file()
    json_mode = ctx.meta.get("json", False)
    verbose = ctx.meta.get("verbose", False)
    quiet = ctx.meta.get("quiet", False)

    if json_mode:
        data = msgspec.to_builtins(config)
        data["path"] = str(config_path)
        output_json_pretty(data)
        return

    # Quiet mode: minimal output
    if quiet:
        console.print(str(config_path))
        return

    toml_data = msgspec.toml.encode(config)
    console.print(
        Panel(Syntax(toml_data.decode(), "toml"), title=f"Config: {config_path}")
    )

    errors = validate_thresholds(config.thresholds)
    for error in errors:
        console.print(f"[yellow]Invalid thresholds:[/yellow] {error} (defaults in use)")

    if verbose:
        if config_path.exists():
            console.print(f"[dim]File size: {config_path.stat().st_size} bytes[/dim]")
        else:
            console.print(
                "[dim]Using default configuration (file not created yet)[/dim]"
            )

    if errors:
        raise typer.Exit(ExitCode.CONFIG_ERROR)


@config_app.command("path")
def config_path_command(ctx: typer.Context) -> None:
    """Show paths used by tokeneater."""
    console = Console()
    paths = {
        "config_dir": str(config_dir()),
        "config_file": str(config_file()),
        "state_dir": str(state_dir()),
        "shared_file": str(shared_file()),
    }

    if ctx.meta.get("json", False):
        output_json_pretty(paths)
        return

    if ctx.meta.get("quiet", False):
        console.print(paths["config_dir"])
        return

    for name, path in paths.items():
        console.print(f"[bold]{name:<12}[/bold] {path}")
