"""``codexforge pack`` / ``codexforge unpack``: encrypted artifact archives."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from codexforge.cli.support import load_json_document
from codexforge.core.archive import ENTRY_MEMBER, pack, unpack
from codexforge.core.errors import PackagingError

console = Console()


def pack_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="The artifact."),
    entry_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="The artifact's .codex.json entry."
    ),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Archive password."
    ),
    output: Path = typer.Option(
        None, "--output", "-o", help="Archive path (default: FILE.codex.zip)."
    ),
) -> None:
    """Pack FILE and its entry into an AES-256 encrypted ZIP."""
    target = output or file.with_name(f"{file.name}.codex.zip")
    try:
        container = pack(file.read_bytes(), file.name, load_json_document(entry_file), password)
    except PackagingError as exc:
        console.print(f"[bold red]Pack failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
    target.write_bytes(container)
    console.print(f"[bold green]Packed[/bold green] {file.name} -> {target}")


def unpack_cmd(
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="The archive."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Archive password."
    ),
    out_dir: Path = typer.Option(
        Path("."), "--out-dir", "-o", file_okay=False, help="Extraction directory."
    ),
) -> None:
    """Extract the artifact and its redacted entry from ARCHIVE."""
    try:
        unpacked = unpack(archive.read_bytes(), password)
    except PackagingError as exc:
        console.print(f"[bold red]Unpack failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    out_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = out_dir / Path(unpacked.artifact_name).name
    artifact_path.write_bytes(unpacked.artifact)
    (out_dir / ENTRY_MEMBER).write_text(
        json.dumps(unpacked.entry, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    console.print(f"[bold green]Extracted[/bold green] {artifact_path}")
    console.print(f"[bold]Entry ID:[/bold] {unpacked.comment_entry.get('id', '<unknown>')}")
