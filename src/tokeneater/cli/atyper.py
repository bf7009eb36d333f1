"""Typer subclass that accepts `async def` commands."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

import typer
from typer.core import TyperCommand


def run_sync(f: Callable) -> Callable:
    """Wrap a coroutine function so Click can call it synchronously."""
    if not inspect.iscoroutinefunction(f):
        return f

    @wraps(f)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return sync_wrapper


class ATyper(typer.Typer):
    """Typer with async command support."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("no_args_is_help", False)
        super().__init__(*args, **kwargs)

    def command(  # type: ignore[override]
        self,
        name: str | None = None,
        *,
        cls: type[TyperCommand] | None = None,
        **kwargs: Any,
    ) -> Callable[[Callable], Callable]:
        """Register a command; coroutine functions run under asyncio.run."""

        def decorator(f: Callable) -> Callable:
            typer.Typer.command(self, name, cls=cls, **kwargs)(run_sync(f))
            return f

        return decorator
