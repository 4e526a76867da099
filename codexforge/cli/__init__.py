"""Codex Forge CLI: Typer-based command-line interface.

Provides the ``codexforge`` command with subcommands for creating,
validating and verifying entries, and for packing and unpacking
password-protected archives.

All output uses Rich for formatted terminal display.
"""
