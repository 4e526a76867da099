"""Codex Forge data models: all Pydantic v2, all frozen (immutable)."""

from codexforge.models.build import (
    PHASE_ORDER,
    VALID_TRANSITIONS,
    AnchorKind,
    BuildPhase,
    BuildRequest,
    BuildResult,
    PhaseRecord,
    PhaseStatus,
    StoredObject,
)
from codexforge.models.entry import (
    CODEX_VERSION,
    Anchor,
    CodexEntry,
    Encryption,
    Identity,
    Signature,
    Storage,
    StorageProtocol,
)

__all__ = [
    # entry
    "CODEX_VERSION",
    "StorageProtocol",
    "Encryption",
    "Storage",
    "Identity",
    "Anchor",
    "Signature",
    "CodexEntry",
    # build
    "BuildPhase",
    "PHASE_ORDER",
    "VALID_TRANSITIONS",
    "PhaseStatus",
    "PhaseRecord",
    "AnchorKind",
    "StoredObject",
    "BuildRequest",
    "BuildResult",
]
