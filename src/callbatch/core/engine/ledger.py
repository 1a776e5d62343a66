"""
Bounded, most-recent-first log of run outcomes.
"""

from __future__ import annotations

from collections import deque
from typing import Iterator

from .models import Outcome


DEFAULT_LEDGER_CAPACITY = 20


class ResultLedger:
    """Keeps the most recent outcomes, newest first.

    Recording prepends; once capacity is reached the oldest entry
    falls off the tail. Entries are never modified after insertion.
    """

    def __init__(self, capacity: int = DEFAULT_LEDGER_CAPACITY):
        if not 1 <= capacity <= DEFAULT_LEDGER_CAPACITY:
            raise ValueError(f"Ledger capacity must be between 1 and {DEFAULT_LEDGER_CAPACITY}")
        self.capacity = capacity
        self._entries: deque[Outcome] = deque(maxlen=capacity)

    def record(self, outcome: Outcome) -> None:
        """Prepend an outcome, evicting the oldest on overflow."""
        self._entries.appendleft(outcome)

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> tuple[Outcome, ...]:
        """Current entries, newest first."""
        return tuple(self._entries)

    @property
    def latest(self) -> Outcome | None:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Outcome]:
        return iter(self.snapshot())
