"""Notification test command."""

from __future__ import annotations

import typer
from rich.console import Console

from tokeneater.cli.app import app
from tokeneater.cli.runtime import build_notifications
from tokeneater.core.notifications import Alert
from tokeneater.core.notifications import CallbackNotifier
from tokeneater.core.notifications import ConsoleNotifier
from tokeneater.display.json import output_json_pretty


@app.command("notify-test")
def notify_test_command(ctx: typer.Context) -> None:
    """Send a sample notification."""
    if ctx.meta.get("json", False):
        alerts: list[Alert] = []
        build_notifications(CallbackNotifier(alerts.append)).send_test()
        output_json_pretty(alerts)
        return

    build_notifications(ConsoleNotifier(Console())).send_test()
