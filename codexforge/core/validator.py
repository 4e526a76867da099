"""Codex entry schema validation.

The schema is expressed as a set of strict pydantic models, separate from
the builder's ``CodexEntry`` so that untrusted documents are checked
field-by-field.  Pydantic collects every violation in one pass, which is
what lets :func:`validate` report all problems at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from codexforge.core.errors import IntegrityError, ValidationError
from codexforge.core.integrity import decode_integrity
from codexforge.models.entry import CODEX_VERSION, CodexEntry

UUID_V4_PATTERN = (
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-4[0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$"
)
# CAIP-2 style "<namespace>:<reference>"
CHAIN_ID_PATTERN = r"^[-a-z0-9]{3,8}:[-_a-zA-Z0-9]{1,32}$"

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
UuidV4 = Annotated[StrictStr, Field(pattern=UUID_V4_PATTERN)]

StorageProtocolName = Literal["ipfs", "s3", "azureblob", "gcs", "ftp", "local", "gdrive"]
AnchorHashAlg = Literal["sha-256", "sha-384", "sha-512"]


class _EncryptionSchema(BaseModel):
    alg: NonEmptyStr


class _StorageSchema(BaseModel):
    protocol: StorageProtocolName
    location: NonEmptyStr
    integrity_proof: StrictStr
    encryption: _EncryptionSchema | None = None

    @field_validator("integrity_proof")
    @classmethod
    def _check_integrity_proof(cls, value: str) -> str:
        try:
            decode_integrity(value)
        except IntegrityError as exc:
            raise ValueError(str(exc)) from exc
        return value


class _IdentitySchema(BaseModel):
    org: NonEmptyStr
    process: NonEmptyStr
    artifact: NonEmptyStr
    subject: StrictStr | None = None


class _AnchorSchema(BaseModel):
    chain: Annotated[StrictStr, Field(pattern=CHAIN_ID_PATTERN)]
    tx: NonEmptyStr
    hash_alg: AnchorHashAlg
    url: StrictStr | None = None
    timestamp: StrictStr | None = None


class _SignatureSchema(BaseModel):
    alg: NonEmptyStr
    kid: NonEmptyStr
    signature: NonEmptyStr


class _EntrySchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: UuidV4
    version: Literal[CODEX_VERSION]
    storage: _StorageSchema
    identity: _IdentitySchema
    anchor: _AnchorSchema
    signatures: list[_SignatureSchema]
    previous_id: UuidV4 | None = None


class ValidationReport(BaseModel):
    """Outcome of :func:`validate`.  ``errors`` is empty iff ``valid``."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[str] = []

    def raise_for_errors(self, *, phase: str | None = None) -> None:
        if not self.valid:
            raise ValidationError(self.errors, phase=phase)


def _path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc)


def _describe(error: dict[str, Any]) -> str:
    loc = tuple(error.get("loc", ()))
    kind = error.get("type", "")
    if kind == "extra_forbidden":
        return f"unexpected property '{_path(loc)}'"
    if kind == "missing":
        return f"missing required property '{_path(loc)}'"
    msg = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{_path(loc)}: {msg}" if loc else msg


def validate(entry: Mapping[str, Any] | CodexEntry) -> ValidationReport:
    """Check *entry* against the Codex schema.

    Pure: no I/O, no mutation.  Every violation is collected and returned;
    validation never stops at the first failure.
    """
    if isinstance(entry, CodexEntry):
        document: Any = entry.to_document()
    else:
        document = entry
    if not isinstance(document, Mapping):
        return ValidationReport(valid=False, errors=["entry must be a JSON object"])
    try:
        _EntrySchema.model_validate(dict(document))
    except PydanticValidationError as exc:
        errors = [_describe(err) for err in exc.errors()]
        return ValidationReport(valid=False, errors=errors)
    return ValidationReport(valid=True)
