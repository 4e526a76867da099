"""Linear phase state machine for one entry run.

Enforces:
- Valid transitions only (VALID_TRANSITIONS table)
- No forward progress once the run has failed
- Every transition recorded, in order, for the run report
"""

from __future__ import annotations

import logging

from codexforge.models.build import (
    VALID_TRANSITIONS,
    BuildPhase,
    PhaseRecord,
    PhaseStatus,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested phase transition is not valid."""


class PhaseMachine:
    """Tracks the current phase of a single run.

    Parameters
    ----------
    run_id:
        Identifier used in log lines (the entry id once known).
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._current = BuildPhase.START
        self._records: list[PhaseRecord] = [
            PhaseRecord(phase=BuildPhase.START, status=PhaseStatus.COMPLETED)
        ]

    @property
    def current(self) -> BuildPhase:
        return self._current

    @property
    def records(self) -> list[PhaseRecord]:
        return list(self._records)

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self._current]

    def _move(self, target: BuildPhase, status: PhaseStatus, detail: str) -> PhaseRecord:
        allowed = VALID_TRANSITIONS[self._current]
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot move run {self.run_id} from {self._current.value} to {target.value}. "
                f"Allowed: {sorted(p.value for p in allowed)}"
            )
        record = PhaseRecord(phase=target, status=status, detail=detail)
        self._records.append(record)
        self._current = target
        return record

    def complete(self, phase: BuildPhase, detail: str = "") -> PhaseRecord:
        """Record *phase* (the next one in order) as completed."""
        logger.info("[%s] %s", self.run_id, phase.value)
        return self._move(phase, PhaseStatus.COMPLETED, detail)

    def skip(self, phase: BuildPhase, reason: str) -> PhaseRecord:
        """Advance past an optional *phase* without running it."""
        logger.info("[%s] %s skipped: %s", self.run_id, phase.value, reason)
        return self._move(phase, PhaseStatus.SKIPPED, reason)

    def fail(self, phase: BuildPhase, detail: str) -> PhaseRecord:
        """Record that *phase* failed and stop the run."""
        logger.warning("[%s] %s failed: %s", self.run_id, phase.value, detail)
        record = PhaseRecord(phase=phase, status=PhaseStatus.FAILED, detail=detail)
        self._records.append(record)
        self._move(BuildPhase.FAILED, PhaseStatus.FAILED, detail)
        return record
