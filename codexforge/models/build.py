"""Entry-run models: phases, requests and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from codexforge.models.entry import CodexEntry, StorageProtocol


class BuildPhase(str, Enum):
    """Phases of one entry-creation run, in execution order."""

    START = "start"
    REASSEMBLE = "reassemble"
    UPLOAD_PAYLOAD = "upload_payload"
    COMPUTE_INTEGRITY = "compute_integrity"
    ANCHOR = "anchor"
    ASSEMBLE_UNSIGNED = "assemble_unsigned"
    SIGN = "sign"
    UPLOAD_ENTRY = "upload_entry"
    SELF_REFERENCE = "self_reference"
    VALIDATE = "validate"
    DONE = "done"
    FAILED = "failed"


PHASE_ORDER: tuple[BuildPhase, ...] = (
    BuildPhase.START,
    BuildPhase.REASSEMBLE,
    BuildPhase.UPLOAD_PAYLOAD,
    BuildPhase.COMPUTE_INTEGRITY,
    BuildPhase.ANCHOR,
    BuildPhase.ASSEMBLE_UNSIGNED,
    BuildPhase.SIGN,
    BuildPhase.UPLOAD_ENTRY,
    BuildPhase.SELF_REFERENCE,
    BuildPhase.VALIDATE,
    BuildPhase.DONE,
)

# Linear machine: each phase may only advance to the next one, and any
# non-terminal phase may fail.  DONE and FAILED are terminal.
VALID_TRANSITIONS: dict[BuildPhase, set[BuildPhase]] = {
    phase: {PHASE_ORDER[i + 1], BuildPhase.FAILED}
    for i, phase in enumerate(PHASE_ORDER[:-1])
}
VALID_TRANSITIONS[BuildPhase.DONE] = set()
VALID_TRANSITIONS[BuildPhase.FAILED] = set()


class PhaseStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class PhaseRecord(BaseModel):
    """One step of a run, kept for reporting."""

    model_config = ConfigDict(frozen=True)

    phase: BuildPhase
    status: PhaseStatus
    detail: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class AnchorKind(str, Enum):
    MOCK = "mock"
    GOOGLE = "google"


class StoredObject(BaseModel):
    """Reference returned by a blob storage provider.

    ``location`` is the stable reference written into ``storage.location``;
    ``url`` is whatever fetchable link the provider handed back.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    location: str


class BuildRequest(BaseModel):
    """Input for one entry-creation run.

    Exactly one of ``data`` or ``chunks`` must be given.  ``chunks`` maps a
    declared chunk index to its bytes; arrival order is irrelevant.
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(min_length=1)
    data: bytes | None = None
    chunks: dict[int, bytes] | None = None
    total_chunks: int | None = None
    mime_type: str | None = None

    anchor: AnchorKind = AnchorKind.MOCK
    storage_protocol: StorageProtocol = StorageProtocol.LOCAL
    store_payload: bool = True
    store_entry: bool = True
    self_reference: bool = False

    org: str = "Codex Forge"
    previous_id: str | None = None
    encryption_alg: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> BuildRequest:
        if (self.data is None) == (self.chunks is None):
            raise ValueError("provide exactly one of 'data' or 'chunks'")
        return self


class BuildResult(BaseModel):
    """Outcome of a run.

    On success ``entry`` holds the validated entry.  On failure ``entry`` is
    ``None``; ``error`` is ``"<phase>/<ErrorKind>"`` and ``details`` carries
    the cause message or the validator's error list.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    entry: CodexEntry | None = None
    error: str | None = None
    details: str | list[str] | None = None
    failed_phase: BuildPhase | None = None
    payload_info: StoredObject | None = None
    entry_info: StoredObject | None = None
    self_ref_info: StoredObject | None = None
    phases: list[PhaseRecord] = []
