"""Shared helpers for CLI commands: logging setup, async bridge, entry loading."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

T = TypeVar("T")

error_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Route all library logging through a single Rich handler on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine from sync context."""
    return asyncio.run(coro)


def load_json_document(path: Path) -> Any:
    """Read *path* as JSON, exiting with code 1 on any read or parse error."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        error_console.print(f"[bold red]Cannot read {path}:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        error_console.print(f"[bold red]{path} is not valid JSON:[/bold red] {exc}")
        raise typer.Exit(code=1)
