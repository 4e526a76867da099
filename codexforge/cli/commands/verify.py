"""``codexforge verify ENTRY``: check signatures and, optionally, the artifact.

Each signature is verified with the public key embedded in its ``kid``
against the canonical form of the document as stored on disk, without
``signatures``.  With ``--artifact`` the file's digest is also compared
to ``storage.integrity_proof``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError as ModelValidationError
from rich.console import Console
from rich.table import Table

from codexforge.cli.support import load_json_document
from codexforge.core.errors import CodexError, IntegrityError
from codexforge.core.integrity import verify_integrity
from codexforge.core.signer import key_fingerprint, verify_entry
from codexforge.models.entry import CodexEntry

console = Console()


def verify_cmd(
    entry_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Path to a .codex.json entry."
    ),
    artifact: Path = typer.Option(
        None,
        "--artifact",
        "-a",
        exists=True,
        dir_okay=False,
        help="Artifact file to check against storage.integrity_proof.",
    ),
) -> None:
    """Verify the signatures on ENTRY.

    Exits with code 1 if the entry is unsigned, any signature fails, or
    the artifact does not match.
    """
    document = load_json_document(entry_file)
    try:
        entry = CodexEntry.from_document(document)
    except ModelValidationError as exc:
        console.print(f"[bold red]Not a Codex entry:[/bold red] {entry_file}")
        console.print(f"[dim]{exc}[/dim]")
        raise typer.Exit(code=1)

    ok = True
    try:
        results = verify_entry(document)
    except CodexError as exc:
        console.print(f"[bold red]Cannot verify entry:[/bold red] {exc}")
        raise typer.Exit(code=1)
    if not results:
        console.print("[bold yellow]Entry has no signatures to verify.[/bold yellow]")
        ok = False
    else:
        table = Table(title=f"Signatures on {entry.id}")
        table.add_column("#", justify="right")
        table.add_column("Alg")
        table.add_column("Key", style="cyan")
        table.add_column("Valid", justify="center")
        for i, (sig, valid) in enumerate(zip(entry.signatures, results), start=1):
            mark = "[green]Yes[/green]" if valid else "[red]No[/red]"
            table.add_row(str(i), sig.alg, key_fingerprint(sig.kid), mark)
        console.print(table)
        ok = all(results)

    if artifact is not None:
        try:
            matches = verify_integrity(artifact.read_bytes(), entry.storage.integrity_proof)
        except IntegrityError as exc:
            console.print(f"[bold red]Integrity check error:[/bold red] {exc}")
            matches = False
        if matches:
            console.print(f"[bold green]Artifact matches[/bold green] {entry.storage.integrity_proof}")
        else:
            console.print(f"[bold red]Artifact does not match[/bold red] {entry.storage.integrity_proof}")
        ok = ok and matches

    if not ok:
        raise typer.Exit(code=1)
