"""``codexforge validate ENTRY``: check an entry document against the schema."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from codexforge.cli.support import load_json_document
from codexforge.core.validator import validate

console = Console()


def validate_cmd(
    entry_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Path to a .codex.json entry."
    ),
) -> None:
    """Validate ENTRY and list every schema violation found."""
    report = validate(load_json_document(entry_file))
    if report.valid:
        console.print(f"[bold green]Valid[/bold green] {entry_file}")
        return

    console.print(
        f"[bold red]Invalid[/bold red] {entry_file}: {len(report.errors)} error(s)"
    )
    for error in report.errors:
        console.print(f"  [red]- {escape(error)}[/red]")
    raise typer.Exit(code=1)
