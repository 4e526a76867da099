"""Error taxonomy for the entry pipeline.

Every error carries the pipeline ``phase`` it was raised in (when known)
and the underlying ``cause`` so the builder can report exactly which step
failed.  ``kind`` is the class name and is what callers see in
``BuildResult.error``.
"""

from __future__ import annotations


class CodexError(RuntimeError):
    """Base class for all Codex Forge pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self).__name__

    def with_phase(self, phase: str) -> CodexError:
        """Tag the error with *phase* unless a phase is already set."""
        if self.phase is None:
            self.phase = phase
        return self


class CredentialError(CodexError):
    """Raised when a bearer credential is missing, expired or rejected."""


class TransportError(CodexError):
    """Raised when an upload or other network operation fails."""

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, phase=phase, cause=cause)
        self.status_code = status_code


class IntegrityError(CodexError):
    """Raised when a digest cannot be computed or decoded."""


class ChunkGapError(IntegrityError):
    """Raised when chunked input is missing one or more indices."""


class AnchorError(CodexError):
    """Raised when an anchor provider cannot produce a proof."""


class SignatureError(CodexError):
    """Raised when signing fails or is attempted on non-canonical bytes."""


class CanonicalizationError(CodexError):
    """Raised when a value has no canonical JSON form."""


class ValidationError(CodexError):
    """Raised when an entry violates the Codex schema.

    ``errors`` holds every violation, not just the first.
    """

    def __init__(
        self,
        errors: list[str],
        *,
        phase: str | None = None,
    ) -> None:
        super().__init__(
            f"Entry failed schema validation with {len(errors)} error(s)",
            phase=phase,
        )
        self.errors = list(errors)


class PackagingError(CodexError):
    """Raised when archive construction preconditions are violated."""
