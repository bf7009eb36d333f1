"""Reader commands: cached usage and the display-surface status entry."""

from __future__ import annotations

from datetime import timedelta

import typer
from rich.console import Console
from rich.text import Text

from tokeneater.cli.app import ExitCode
from tokeneater.cli.app import app
from tokeneater.cli.runtime import open_store
from tokeneater.config.settings import Config
from tokeneater.config.settings import get_config
from tokeneater.config.shared import SharedStateStore
from tokeneater.core.timeline import ERROR_NOT_CONFIGURED
from tokeneater.core.timeline import TimelineEntry
from tokeneater.core.timeline import TimelineProvider
from tokeneater.display.json import output_json_pretty
from tokeneater.display.rich import UsageDisplay
from tokeneater.models import ModelTokenStats


def timeline_for(config: Config, store: SharedStateStore) -> TimelineProvider:
    return TimelineProvider(
        store, freshness=timedelta(seconds=config.poll.stale_after_seconds)
    )


def entry_payload(
    entry: TimelineEntry, model_stats: list[ModelTokenStats] | None = None
) -> dict:
    data = {
        "date": entry.date,
        "snapshot": entry.snapshot,
        "fetched_at": entry.fetched_at,
        "is_stale": entry.is_stale,
        "error": entry.error,
        "pacing": entry.pacing,
    }
    if model_stats is not None:
        data["model_stats"] = model_stats
    return data


def format_summary(entry: TimelineEntry) -> str:
    """One-line summary for quiet mode and status bars."""
    if entry.snapshot is None:
        return entry.error or ""

    parts = []
    if entry.snapshot.five_hour is not None:
        parts.append(f"Session {entry.snapshot.five_hour.percent()}%")
    if entry.snapshot.seven_day is not None:
        parts.append(f"Weekly {entry.snapshot.seven_day.percent()}%")
    if entry.snapshot.seven_day_sonnet is not None:
        parts.append(f"Sonnet {entry.snapshot.seven_day_sonnet.percent()}%")
    summary = " · ".join(parts)
    return f"{summary} (stale)" if entry.is_stale else summary


def render_entry(
    console: Console,
    entry: TimelineEntry,
    config: Config,
    model_stats: list[ModelTokenStats] | None = None,
) -> None:
    if entry.snapshot is None:
        console.print(f"[yellow]No usage data:[/yellow] {entry.error}")
        if entry.error == ERROR_NOT_CONFIGURED:
            console.print("[dim]Run 'tokeneater login' to connect your Claude account.[/dim]")
        else:
            console.print("[dim]Run 'tokeneater sync' to fetch usage.[/dim]")
        return

    console.print(
        UsageDisplay(
            entry.snapshot,
            thresholds=config.effective_thresholds(),
            fetched_at=entry.fetched_at,
            is_stale=entry.is_stale,
            pacing=entry.pacing,
            model_stats=model_stats,
            now=entry.date,
        )
    )


def show_cached_usage(ctx: typer.Context, console: Console) -> None:
    """Default command: show the last synced usage without any network call."""
    config = get_config()
    store = open_store()
    entry = timeline_for(config, store).latest_entry()
    model_stats = store.read_model_stats()

    if ctx.meta.get("json", False):
        output_json_pretty(entry_payload(entry, model_stats))
        return
    if ctx.meta.get("quiet", False):
        console.print(format_summary(entry))
        return
    render_entry(console, entry, config, model_stats)


@app.command("status")
async def status_command(
    ctx: typer.Context,
    follow: bool = typer.Option(
        False, "--follow", "-f", help="Keep printing a fresh entry on an interval"
    ),
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between entries with --follow"
    ),
) -> None:
    """Show the latest usage entry as a display surface sees it."""
    console = Console()
    config = get_config()
    provider = timeline_for(config, open_store())
    json_mode = ctx.meta.get("json", False)
    quiet = ctx.meta.get("quiet", False)

    def emit(entry: TimelineEntry) -> None:
        if json_mode:
            output_json_pretty(entry_payload(entry))
        elif quiet:
            console.print(Text(format_summary(entry)))
        else:
            render_entry(console, entry, config)

    if not follow:
        entry = provider.latest_entry()
        emit(entry)
        if entry.error == ERROR_NOT_CONFIGURED:
            raise typer.Exit(ExitCode.AUTH_ERROR)
        return

    async for entry in provider.entries(
        interval or config.poll.timeline_interval_seconds
    ):
        emit(entry)
