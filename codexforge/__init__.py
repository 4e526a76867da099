"""Codex Forge: signed, anchored provenance entries for digital artifacts.

v0.2.0:
  - RFC 8785 canonical JSON and RFC 6920 ``ni:///`` integrity tokens
  - ES256 signatures with self-describing ``jwk:`` key ids
  - Mock and Google Drive anchors, local and Drive storage
  - Chunked uploads, self-referential entries, AES-256 archives
"""

__version__ = "0.2.0"
__description__ = "Signed, anchored provenance entries for digital artifacts"

from codexforge.core.builder import EntryBuilder
from codexforge.core.validator import validate
from codexforge.models.entry import CodexEntry
from codexforge.cli.app import app as cli

__all__ = ["EntryBuilder", "CodexEntry", "validate", "cli", "__version__"]
