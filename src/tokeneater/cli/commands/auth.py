"""Sign-in and sign-out commands."""

from __future__ import annotations

import typer
from rich.console import Console

from tokeneater.cli.app import ExitCode
from tokeneater.cli.app import app
from tokeneater.cli.runtime import build_engine
from tokeneater.config.settings import get_config
from tokeneater.display.json import output_json_pretty


@app.command("login")
async def login_command(ctx: typer.Context) -> None:
    """Read the Claude CLI credential (may prompt) and test the connection."""
    console = Console()
    json_mode = ctx.meta.get("json", False)
    quiet = ctx.meta.get("quiet", False)

    engine = build_engine(get_config(), console)
    try:
        result = await engine.sign_in()
    finally:
        await engine.client.aclose()

    if json_mode:
        output_json_pretty(result)
    elif result.success:
        if not quiet:
            console.print(f"[green]✓[/green] {result.message}")
    else:
        console.print(f"[red]✗[/red] {result.message}")
        if not quiet:
            console.print(
                "[dim]Sign in with the Claude CLI first ('claude'), then retry.[/dim]"
            )

    if not result.success:
        raise typer.Exit(ExitCode.AUTH_ERROR)


@app.command("logout")
def logout_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear all local state: stored credential, cached usage and alert levels.

    The Claude CLI's own credential is left untouched.
    """
    console = Console()
    json_mode = ctx.meta.get("json", False)
    quiet = ctx.meta.get("quiet", False)

    if not yes and not json_mode:
        if not typer.confirm("Clear stored credential and cached usage?"):
            raise typer.Exit(ExitCode.SUCCESS)

    engine = build_engine(get_config(), console)
    engine.sign_out()

    if json_mode:
        output_json_pretty({"success": True})
    elif not quiet:
        console.print("[green]✓[/green] Signed out")
