"""
Run data structures.

Immutable records shared by the run controller, the invoker and
anything that observes a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# Target placeholder used when a failure is not attributable to any target
NO_TARGET = "N/A"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    """Lifecycle status of the batch run."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    COMPLETED = "completed"

    @property
    def active(self) -> bool:
        """Whether a run loop currently owns the state."""
        return self in (RunStatus.RUNNING, RunStatus.STOPPING)


class OutcomeResult(str, Enum):
    """Classification of one attempted target."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Outcome:
    """Result of attempting one target."""

    sequence_index: int  # 1-based, 0 for run-level failures
    target: str
    result: OutcomeResult
    detail: str | None = None
    completed_at: datetime = field(default_factory=utcnow)

    # Channel reference for the submitted call (e.g. tx hash)
    reference: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is OutcomeResult.SUCCESS

    @classmethod
    def success(
        cls,
        sequence_index: int,
        target: str,
        reference: str | None = None,
    ) -> "Outcome":
        return cls(
            sequence_index=sequence_index,
            target=target,
            result=OutcomeResult.SUCCESS,
            reference=reference,
        )

    @classmethod
    def failure(
        cls,
        sequence_index: int,
        target: str,
        detail: str,
        reference: str | None = None,
    ) -> "Outcome":
        return cls(
            sequence_index=sequence_index,
            target=target,
            result=OutcomeResult.FAILURE,
            detail=detail,
            reference=reference,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sequence_index": self.sequence_index,
            "target": self.target,
            "result": self.result.value,
            "detail": self.detail,
            "completed_at": self.completed_at.isoformat(),
            "reference": self.reference,
        }


@dataclass(frozen=True)
class RunSnapshot:
    """Read-only view of the run state at one point in time."""

    status: RunStatus
    cursor: int
    total: int
    succeeded: int
    failed: int
    ledger: tuple[Outcome, ...]
    run_id: str | None = None

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def progress_percentage(self) -> float:
        """Share of targets reached by the cursor."""
        if self.total == 0:
            return 0.0
        return (self.cursor / self.total) * 100.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "cursor": self.cursor,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "processed": self.processed,
            "run_id": self.run_id,
            "ledger": [outcome.to_dict() for outcome in self.ledger],
        }
