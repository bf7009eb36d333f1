"""Main CLI application for tokeneater."""

from __future__ import annotations

from enum import IntEnum

import typer
from rich.console import Console

from tokeneater.cli.atyper import ATyper
from tokeneater.cli.logs import configure_logging
from tokeneater.errors import ErrorKind

# Create the main app
app = ATyper(
    name="tokeneater",
    help="Keep an eye on your Claude usage limits",
    add_completion=True,
    no_args_is_help=False,
    invoke_without_command=True,
)


class ExitCode(IntEnum):
    """Exit codes for tokeneater."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 2
    NETWORK_ERROR = 3
    CONFIG_ERROR = 4


def exit_code_for(kind: ErrorKind) -> ExitCode:
    """Map a sync error kind to a process exit code."""
    match kind:
        case ErrorKind.NO_CREDENTIAL | ErrorKind.VAULT_LOCKED | ErrorKind.AUTH_FAILURE:
            return ExitCode.AUTH_ERROR
        case ErrorKind.NETWORK_ERROR | ErrorKind.HTTP_ERROR:
            return ExitCode.NETWORK_ERROR
        case _:
            return ExitCode.GENERAL_ERROR


@app.callback()
def main(
    ctx: typer.Context,
    json: bool = typer.Option(False, "--json", "-j", help="Enable JSON output mode"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Enable quiet mode"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """TokenEater - Keep an eye on your Claude usage limits."""
    if version:
        from tokeneater import __version__

        typer.echo(f"tokeneater {__version__}")
        raise typer.Exit()

    # Resolve conflicts: verbose and quiet are mutually exclusive, quiet takes precedence
    if verbose and quiet:
        verbose = False

    ctx.meta["json"] = json
    ctx.meta["verbose"] = verbose
    ctx.meta["quiet"] = quiet
    configure_logging(verbose=verbose, quiet=quiet)

    # Without a subcommand, show the cached usage (reader only, no network)
    if ctx.invoked_subcommand is None:
        from tokeneater.cli.commands.status import show_cached_usage

        show_cached_usage(ctx, Console())


def run_app() -> None:
    """Run the CLI app."""
    app()


# Import command modules - they register themselves via @app.command() decorators
from tokeneater.cli.commands import auth  # noqa: E402,F401
from tokeneater.cli.commands import notify  # noqa: E402,F401
from tokeneater.cli.commands import status  # noqa: E402,F401
from tokeneater.cli.commands import sync  # noqa: E402,F401
from tokeneater.cli.commands import config as config_cmd  # noqa: E402

app.add_typer(config_cmd.config_app, name="config")
