"""Sync-owner commands: one refresh, or the poll loop."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from tokeneater.cli.app import ExitCode
from tokeneater.cli.app import app
from tokeneater.cli.app import exit_code_for
from tokeneater.cli.runtime import build_engine
from tokeneater.config.settings import Config
from tokeneater.config.settings import get_config
from tokeneater.core.sync import SyncEngine
from tokeneater.core.sync import SyncResult
from tokeneater.display.json import output_json
from tokeneater.display.json import output_json_pretty
from tokeneater.display.rich import UsageDisplay
from tokeneater.display.rich import format_error


def display_result(
    console: Console,
    result: SyncResult,
    config: Config,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Render a sync result; on error the cached snapshot is shown as stale."""
    if result.error is not None and not quiet:
        console.print(format_error(result.error))

    if result.snapshot is not None and not quiet:
        if result.error is not None:
            console.print()
        console.print(
            UsageDisplay(
                result.snapshot,
                thresholds=config.effective_thresholds(),
                fetched_at=result.fetched_at,
                is_stale=not result.ok,
                pacing=result.pacing,
            )
        )

    if verbose:
        console.print(f"[dim]Requests: {result.network_calls}[/dim]")


async def run_sync(engine: SyncEngine) -> SyncResult:
    try:
        return await engine.refresh()
    finally:
        await engine.stop()
        await engine.client.aclose()


@app.command("sync")
async def sync_command(ctx: typer.Context) -> None:
    """Fetch usage once and update the shared state."""
    console = Console()
    config = get_config()
    json_mode = ctx.meta.get("json", False)
    verbose = ctx.meta.get("verbose", False)
    quiet = ctx.meta.get("quiet", False)

    result = await run_sync(build_engine(config, console))

    if json_mode:
        output_json_pretty(result)
    else:
        display_result(console, result, config, verbose=verbose, quiet=quiet)

    if result.error is not None:
        raise typer.Exit(exit_code_for(result.error.kind))


async def run_watch(engine: SyncEngine, interval: float | None) -> None:
    try:
        engine.start(interval)
        await asyncio.Event().wait()
    finally:
        await engine.stop()
        await engine.client.aclose()


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between polls (default from config)"
    ),
) -> None:
    """Poll usage until interrupted, sending threshold notifications."""
    console = Console()
    config = get_config()
    json_mode = ctx.meta.get("json", False)
    verbose = ctx.meta.get("verbose", False)
    quiet = ctx.meta.get("quiet", False)

    engine = build_engine(config, console)

    def on_result(result: SyncResult) -> None:
        if json_mode:
            output_json(result)
        elif quiet:
            return
        else:
            console.clear()
            display_result(console, result, config, verbose=verbose)

    engine.subscribe(on_result)

    try:
        asyncio.run(run_watch(engine, interval))
    except KeyboardInterrupt:
        if not quiet and not json_mode:
            console.print("\n[yellow]Stopped[/yellow]")
        raise typer.Exit(ExitCode.SUCCESS) from None
