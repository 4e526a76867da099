"""Password-protected archive of an artifact and its Codex entry.

The container is a ZIP with WinZip AES-256 encryption and no compression.
It holds two members:

- the artifact, under its own name
- ``codex-entry.json``: the entry with the fields that reveal where the
  artifact lives removed (``storage.location``, ``anchor.tx``,
  ``anchor.url``), indented by 2 spaces

The ZIP comment carries the full entry as compact JSON.  ZIP comments are
never encrypted, so anyone holding the archive can read the complete
entry without the password; only the redacted copy is protected.
"""

from __future__ import annotations

import copy
import io
import json
import logging
from collections.abc import Mapping
from typing import Any

import pyzipper
from pydantic import BaseModel, ConfigDict

from codexforge.core.errors import PackagingError
from codexforge.models.entry import CodexEntry

logger = logging.getLogger(__name__)

ENTRY_MEMBER = "codex-entry.json"
MAX_COMMENT_BYTES = 65535

# (parent key, child key) pairs stripped from the archived entry copy
REDACTED_FIELDS: tuple[tuple[str, str], ...] = (
    ("storage", "location"),
    ("anchor", "tx"),
    ("anchor", "url"),
)


class UnpackedArchive(BaseModel):
    """Contents read back from a container."""

    model_config = ConfigDict(frozen=True)

    artifact_name: str
    artifact: bytes
    entry: dict[str, Any]  # redacted copy from codex-entry.json
    comment_entry: dict[str, Any]  # full entry from the ZIP comment


def _entry_document(entry: CodexEntry | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(entry, CodexEntry):
        return entry.to_document()
    if isinstance(entry, Mapping):
        return copy.deepcopy(dict(entry))
    raise PackagingError(f"entry must be a JSON object, got {type(entry).__name__}")


def redact(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *document* without the location-revealing fields."""
    redacted = copy.deepcopy(dict(document))
    for parent, child in REDACTED_FIELDS:
        section = redacted.get(parent)
        if isinstance(section, dict):
            section.pop(child, None)
    return redacted


def _password_bytes(password: str | bytes) -> bytes:
    if isinstance(password, str):
        password = password.encode("utf-8")
    if not isinstance(password, bytes) or not password:
        raise PackagingError("password must be a non-empty string")
    return password


def pack(
    artifact_bytes: bytes,
    artifact_name: str,
    entry: CodexEntry | Mapping[str, Any],
    password: str | bytes,
) -> bytes:
    """Build the encrypted container and return its bytes.

    Raises
    ------
    PackagingError
        For a non-bytes artifact, an empty or non-string name, a name that
        collides with ``codex-entry.json``, a non-object entry, an empty
        password, or an entry too large for the ZIP comment.
    """
    if not isinstance(artifact_bytes, (bytes, bytearray)):
        raise PackagingError(
            f"artifact must be bytes, got {type(artifact_bytes).__name__}"
        )
    if not isinstance(artifact_name, str) or not artifact_name:
        raise PackagingError("artifact name must be a non-empty string")
    if artifact_name == ENTRY_MEMBER:
        raise PackagingError(f"artifact name collides with {ENTRY_MEMBER!r}")
    document = _entry_document(entry)
    secret = _password_bytes(password)

    comment = json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    if len(comment) > MAX_COMMENT_BYTES:
        raise PackagingError(
            f"entry is {len(comment)} bytes; ZIP comments are limited to {MAX_COMMENT_BYTES}"
        )
    archived_entry = json.dumps(redact(document), indent=2, ensure_ascii=False)

    buffer = io.BytesIO()
    with pyzipper.AESZipFile(
        buffer, "w", compression=pyzipper.ZIP_STORED, encryption=pyzipper.WZ_AES
    ) as zf:
        zf.setpassword(secret)
        zf.setencryption(pyzipper.WZ_AES, nbits=256)
        zf.comment = comment
        zf.writestr(artifact_name, bytes(artifact_bytes))
        zf.writestr(ENTRY_MEMBER, archived_entry.encode("utf-8"))

    container = buffer.getvalue()
    logger.info(
        "Packed %s (%d bytes) with entry %s into %d-byte archive",
        artifact_name,
        len(artifact_bytes),
        document.get("id"),
        len(container),
    )
    return container


def unpack(container: bytes, password: str | bytes) -> UnpackedArchive:
    """Decrypt *container* and return the artifact and both entry copies."""
    secret = _password_bytes(password)
    try:
        with pyzipper.AESZipFile(io.BytesIO(container)) as zf:
            zf.setpassword(secret)
            names = zf.namelist()
            if ENTRY_MEMBER not in names:
                raise PackagingError(f"archive has no {ENTRY_MEMBER!r} member")
            artifact_names = [n for n in names if n != ENTRY_MEMBER]
            if len(artifact_names) != 1:
                raise PackagingError(
                    f"archive must hold exactly one artifact, found {len(artifact_names)}"
                )
            artifact_name = artifact_names[0]
            artifact = zf.read(artifact_name)
            entry = json.loads(zf.read(ENTRY_MEMBER).decode("utf-8"))
            comment_entry = json.loads(zf.comment.decode("utf-8")) if zf.comment else {}
    except pyzipper.BadZipFile as exc:
        raise PackagingError(f"not a valid archive: {exc}", cause=exc) from exc
    except RuntimeError as exc:
        if isinstance(exc, PackagingError):
            raise
        # pyzipper signals a wrong password with RuntimeError
        raise PackagingError(f"cannot decrypt archive: {exc}", cause=exc) from exc
    except ValueError as exc:
        raise PackagingError(f"archive entry is not valid JSON: {exc}", cause=exc) from exc

    return UnpackedArchive(
        artifact_name=artifact_name,
        artifact=artifact,
        entry=entry,
        comment_entry=comment_entry,
    )
