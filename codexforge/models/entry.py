"""Codex entry models: the provenance record and its parts.

All models are frozen.  Appending a signature or rewriting the storage
location returns a new entry; the original is never touched.  Structural
rules (UUID shape, digest-URI shape, closed enums) are enforced by
``codexforge.core.validator``, not here, so a malformed entry can still be
loaded and reported on in full.
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CODEX_VERSION = "0.0.2"


class StorageProtocol(str, Enum):
    """Where the artifact itself lives."""

    IPFS = "ipfs"
    S3 = "s3"
    AZUREBLOB = "azureblob"
    GCS = "gcs"
    FTP = "ftp"
    LOCAL = "local"
    GDRIVE = "gdrive"


class Encryption(BaseModel):
    model_config = ConfigDict(frozen=True)

    alg: str


class Storage(BaseModel):
    """Artifact storage descriptor.

    ``integrity_proof`` is the sole source of truth for artifact identity;
    ``location`` is advisory and may be rewritten.
    """

    model_config = ConfigDict(frozen=True)

    protocol: StorageProtocol
    location: str
    integrity_proof: str  # "ni:///sha-256;<b64url>"
    encryption: Encryption | None = None


class Identity(BaseModel):
    """Descriptive metadata.  Not integrity-bearing."""

    model_config = ConfigDict(frozen=True)

    org: str
    process: str
    artifact: str
    subject: str | None = None


class Anchor(BaseModel):
    """Reference to an external, timestamped proof."""

    model_config = ConfigDict(frozen=True)

    chain: str  # "<namespace>:<identifier>", e.g. "mock:local"
    tx: str
    hash_alg: str = "sha-256"
    url: str | None = None
    timestamp: str | None = None


class Signature(BaseModel):
    """A detached signature over the canonical unsigned entry."""

    model_config = ConfigDict(frozen=True)

    alg: str
    kid: str
    signature: str


class CodexEntry(BaseModel):
    """A Codex provenance record.

    ``id`` identifies the entry, not the artifact.  Superseding an entry
    means creating a new one whose ``previous_id`` points back here.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    version: str = CODEX_VERSION
    storage: Storage
    identity: Identity
    anchor: Anchor
    signatures: tuple[Signature, ...] = ()
    previous_id: str | None = None

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Plain JSON document; unset optional fields are omitted."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_json(self, *, indent: int | None = None) -> str:
        if indent is None:
            return json.dumps(self.to_document(), separators=(",", ":"), ensure_ascii=False)
        return json.dumps(self.to_document(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> CodexEntry:
        return cls.model_validate(document)

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_signature(self, signature: Signature) -> CodexEntry:
        return self.model_copy(update={"signatures": (*self.signatures, signature)})

    def without_signatures(self) -> CodexEntry:
        return self.model_copy(update={"signatures": ()})

    def with_location(self, location: str) -> CodexEntry:
        """Rewrite ``storage.location``.

        Existing signatures no longer cover the result; callers must reset
        and re-sign (see ``codexforge.core.signer.rewrite_location``).
        """
        storage = self.storage.model_copy(update={"location": location})
        return self.model_copy(update={"storage": storage})
