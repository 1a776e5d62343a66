"""
Observable run state.

A single RunState instance is owned by the run controller. Every
mutation publishes a fresh RunSnapshot to subscribers before
returning, so observers never miss an intermediate state.
"""

from __future__ import annotations

import logging
from typing import Callable

from .ledger import DEFAULT_LEDGER_CAPACITY, ResultLedger
from .models import Outcome, OutcomeResult, RunSnapshot, RunStatus


logger = logging.getLogger(__name__)

StateListener = Callable[[RunSnapshot], None]


class RunState:
    """Mutable state of the batch run with publish/subscribe access."""

    def __init__(self, ledger_capacity: int = DEFAULT_LEDGER_CAPACITY):
        self.status = RunStatus.IDLE
        self.cursor = 0
        self.total = 0
        self.succeeded = 0
        self.failed = 0
        self.run_id: str | None = None
        self.ledger = ResultLedger(ledger_capacity)

        self._listeners: list[StateListener] = []

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        """Get an immutable copy of the current state."""
        return RunSnapshot(
            status=self.status,
            cursor=self.cursor,
            total=self.total,
            succeeded=self.succeeded,
            failed=self.failed,
            ledger=self.ledger.snapshot(),
            run_id=self.run_id,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with a snapshot after each mutation.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def begin(self, total: int, run_id: str | None = None) -> None:
        """Enter RUNNING with counters, cursor and ledger reset."""
        self.status = RunStatus.RUNNING
        self.cursor = 0
        self.total = total
        self.succeeded = 0
        self.failed = 0
        self.run_id = run_id
        self.ledger.clear()
        self._publish()

    def set_total(self, total: int) -> None:
        """Set the target count once the catalog has been resolved."""
        if total < 0:
            raise ValueError("Total must be >= 0")
        self.total = total
        self._publish()

    def advance(self, cursor: int) -> None:
        """Move the cursor to the 1-based position being processed."""
        if cursor < 0 or cursor > self.total:
            raise ValueError(f"Cursor {cursor} outside 0..{self.total}")
        self.cursor = cursor
        self._publish()

    def record_attempt(self, outcome: Outcome) -> None:
        """Count a classified attempt and add it to the ledger."""
        if outcome.result is OutcomeResult.SUCCESS:
            self.succeeded += 1
        else:
            self.failed += 1
        self.ledger.record(outcome)
        self._publish()

    def record_notice(self, outcome: Outcome) -> None:
        """Add a run-level outcome to the ledger without counting it."""
        self.ledger.record(outcome)
        self._publish()

    def mark_stopping(self) -> None:
        self.status = RunStatus.STOPPING
        self._publish()

    def finish(self) -> None:
        """Pass through COMPLETED back to IDLE.

        Counters and ledger are kept for display until the next begin().
        """
        self.status = RunStatus.COMPLETED
        self._publish()

        self.status = RunStatus.IDLE
        self.cursor = 0
        self._publish()
