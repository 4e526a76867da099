"""``codexforge create FILE``: build a signed, anchored entry for a file.

Runs the full entry pipeline with the configured storage backend and
anchor, writes ``<entry id>.codex.json`` to the output directory and,
with ``--archive``, also packs the file and entry into an encrypted ZIP.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from codexforge.cli.support import run_async
from codexforge.config import config
from codexforge.core.archive import pack
from codexforge.core.builder import EntryBuilder
from codexforge.core.errors import PackagingError
from codexforge.models.build import AnchorKind, BuildRequest, BuildResult

console = Console()


async def _build(request: BuildRequest) -> BuildResult:
    async with EntryBuilder.from_config(config) as builder:
        return await builder.create_entry(request)


def _request_for(
    path: Path,
    data: bytes,
    *,
    anchor: AnchorKind,
    org: str,
    self_reference: bool,
    previous_id: str | None,
    chunk_size: int,
) -> BuildRequest:
    common = dict(
        filename=path.name,
        anchor=anchor,
        org=org,
        self_reference=self_reference,
        previous_id=previous_id,
        storage_protocol=config.storage_protocol,
    )
    if chunk_size > 0 and data:
        chunks = {
            i: data[offset : offset + chunk_size]
            for i, offset in enumerate(range(0, len(data), chunk_size))
        }
        return BuildRequest(chunks=chunks, total_chunks=len(chunks), **common)
    return BuildRequest(data=data, **common)


def create_cmd(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="The artifact to create an entry for.",
    ),
    anchor: AnchorKind = typer.Option(
        config.anchor,
        "--anchor",
        help="Anchor provider (google falls back to mock without a token).",
    ),
    org: str = typer.Option(config.org, "--org", help="Organization recorded in identity.org."),
    self_reference: bool = typer.Option(
        config.self_reference,
        "--self-reference/--no-self-reference",
        help="Point storage.location at the uploaded entry itself.",
    ),
    previous_id: str = typer.Option(
        None, "--previous-id", help="Id of the entry this one supersedes."
    ),
    chunk_size: int = typer.Option(
        0,
        "--chunk-size",
        min=0,
        help="Feed the file to the pipeline in chunks of this many bytes.",
    ),
    out_dir: Path = typer.Option(
        Path("."),
        "--out-dir",
        "-o",
        file_okay=False,
        help="Directory for the <id>.codex.json entry file.",
    ),
    archive: Path = typer.Option(
        None, "--archive", help="Also write an encrypted archive to this path."
    ),
    password: str = typer.Option(
        None, "--password", help="Archive password (required with --archive)."
    ),
) -> None:
    """Create a Codex entry for FILE.

    Prints the entry id on success.  Exits with code 1 and the failed
    phase if any step of the pipeline fails.
    """
    if archive is not None and not password:
        console.print("[bold red]--archive requires --password[/bold red]")
        raise typer.Exit(code=1)

    data = file.read_bytes()
    request = _request_for(
        file,
        data,
        anchor=anchor,
        org=org,
        self_reference=self_reference,
        previous_id=previous_id,
        chunk_size=chunk_size,
    )
    result = run_async(_build(request))

    if not result.ok or result.entry is None:
        console.print(f"[bold red]Entry creation failed:[/bold red] {result.error}")
        details = result.details if isinstance(result.details, list) else [result.details]
        for detail in details:
            if detail:
                console.print(f"  [red]- {escape(str(detail))}[/red]")
        raise typer.Exit(code=1)

    entry = result.entry
    out_dir.mkdir(parents=True, exist_ok=True)
    entry_path = out_dir / f"{entry.id}.codex.json"
    entry_path.write_text(entry.to_json(indent=2), encoding="utf-8")

    lines = [
        "[bold green]Entry created![/bold green]",
        "",
        f"[bold]Entry ID:[/bold]   {entry.id}",
        f"[bold]Artifact:[/bold]   {entry.identity.artifact}",
        f"[bold]Integrity:[/bold]  {entry.storage.integrity_proof}",
        f"[bold]Location:[/bold]   {entry.storage.protocol.value} {entry.storage.location}",
        f"[bold]Anchor:[/bold]     {entry.anchor.chain} {entry.anchor.tx}",
        f"[bold]Signatures:[/bold] {len(entry.signatures)}",
        f"[bold]Written to:[/bold] {entry_path}",
    ]

    if archive is not None:
        try:
            container = pack(data, file.name, entry, password)
        except PackagingError as exc:
            console.print(f"[bold red]Archive failed:[/bold red] {exc}")
            raise typer.Exit(code=1)
        archive.write_bytes(container)
        lines.append(f"[bold]Archive:[/bold]    {archive}")

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Codex Forge[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()

    # Print the entry id plainly for scripting
    console.print(f"[bold]{entry.id}[/bold]")
