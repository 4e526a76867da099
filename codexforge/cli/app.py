"""Main Typer application: imports and registers all CLI commands.

Entry point: ``codexforge`` (configured via pyproject.toml project.scripts).

Commands: create, validate, verify, pack, unpack.
"""

from __future__ import annotations

import typer

from codexforge.cli.commands.create import create_cmd
from codexforge.cli.commands.pack import pack_cmd, unpack_cmd
from codexforge.cli.commands.validate import validate_cmd
from codexforge.cli.commands.verify import verify_cmd
from codexforge.cli.support import configure_logging
from codexforge.config import config

app = typer.Typer(
    name="codexforge",
    help="Codex Forge: signed, anchored provenance entries for digital artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _root(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to CODEXFORGE_LOG_LEVEL).",
    ),
) -> None:
    configure_logging(log_level or config.log_level)


# Register subcommands
app.command(name="create", help="Create a signed, anchored entry for a file.")(create_cmd)
app.command(name="validate", help="Check an entry document against the Codex schema.")(validate_cmd)
app.command(name="verify", help="Verify an entry's signatures and, optionally, its artifact.")(verify_cmd)
app.command(name="pack", help="Pack an artifact and its entry into an encrypted archive.")(pack_cmd)
app.command(name="unpack", help="Extract an encrypted archive.")(unpack_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
